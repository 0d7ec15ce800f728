"""
Pure functions over permission forests.

A forest is a tuple of frozen PermissionNode roots. Nothing here performs I/O
or mutates its input. Each node's `enabled` flag is independent: enabling a
parent says nothing about its children and vice versa.

Traversals use an explicit stack so arbitrarily deep trees do not hit the
recursion limit.
"""
from collections import defaultdict
from typing import Any, Iterable, Iterator, Optional, Sequence, Tuple

from app.features.permissions.schemas import Forest, PermissionNode


def build_forest(permissions: Iterable[Any], granted_ids: Iterable[str]) -> Forest:
    """
    Assemble the tree a role edits from flat permission rows.

    Args:
        permissions: Rows with id, name, icon, parent_id, sort_order and code
            (Permission models or anything shaped like them)
        granted_ids: Permission IDs the role currently holds

    Returns:
        Root nodes ordered by (sort_order, code); a row whose parent does not
        exist is treated as a root. Rows caught in a parent cycle are not
        reachable from any root and are left out.
    """
    granted = set(granted_ids)
    rows = sorted(permissions, key=lambda p: (p.sort_order, p.code))
    known = {p.id for p in rows}

    roots = []
    children_of: dict[str, list[Any]] = defaultdict(list)
    for row in rows:
        if row.parent_id and row.parent_id in known:
            children_of[row.parent_id].append(row)
        else:
            roots.append(row)

    # Post-order: a node is built once all of its children are
    built: dict[str, PermissionNode] = {}
    stack = [(row, False) for row in reversed(roots)]
    while stack:
        row, expanded = stack.pop()
        kids = children_of.get(row.id, [])
        if not expanded:
            stack.append((row, True))
            stack.extend((kid, False) for kid in reversed(kids))
            continue
        built[row.id] = PermissionNode(
            id=row.id,
            name=row.name,
            enabled=row.id in granted,
            icon=row.icon,
            children=tuple(built.pop(kid.id) for kid in kids),
        )

    return tuple(built.pop(row.id) for row in roots)


def iter_nodes(forest: Sequence[PermissionNode]) -> Iterator[PermissionNode]:
    """Yield every node in pre-order (parent before children, siblings in order)."""
    stack = list(reversed(forest))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def find_path(forest: Sequence[PermissionNode], node_id: str) -> Optional[Tuple[int, ...]]:
    """Return the sibling indexes leading from the roots to `node_id`, or None."""
    stack = [((index,), node) for index, node in reversed(list(enumerate(forest)))]
    while stack:
        path, node = stack.pop()
        if node.id == node_id:
            return path
        stack.extend(
            (path + (index,), child)
            for index, child in reversed(list(enumerate(node.children)))
        )
    return None


def set_enabled(forest: Sequence[PermissionNode], node_id: str, value: bool) -> Forest:
    """
    Return a forest where only `node_id` has `enabled == value`.

    Untouched subtrees are shared with the input. An id that is not in the
    forest leaves it as it is; no other node, flag or sibling order changes.
    """
    path = find_path(forest, node_id)
    if path is None:
        return tuple(forest)

    ancestors = []
    siblings: Sequence[PermissionNode] = forest
    for index in path:
        node = siblings[index]
        ancestors.append(node)
        siblings = node.children

    target = ancestors.pop()
    if target.enabled == value:
        return tuple(forest)

    replacement = target.model_copy(update={"enabled": value})
    for depth in range(len(ancestors) - 1, -1, -1):
        parent = ancestors[depth]
        index = path[depth + 1]
        children = parent.children
        replacement = parent.model_copy(
            update={"children": children[:index] + (replacement,) + children[index + 1:]}
        )

    top = path[0]
    return tuple(forest[:top]) + (replacement,) + tuple(forest[top + 1:])


def enabled_ids(forest: Sequence[PermissionNode]) -> list[str]:
    """IDs of enabled nodes in pre-order; the order sent to the grant store."""
    return [node.id for node in iter_nodes(forest) if node.enabled]


def collect_enabled(forest: Sequence[PermissionNode]) -> frozenset[str]:
    """The set of enabled node IDs at any depth."""
    return frozenset(enabled_ids(forest))
