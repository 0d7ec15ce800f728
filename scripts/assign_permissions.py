"""
Grant or revoke permissions of a role from the command line.

Runs a full assignment session: load the role's tree, toggle the given
permission IDs, submit. With --api the session goes through the REST API
(API_BASE_URL / API_TOKEN); otherwise it talks to the database directly.

Usage:
    python -m scripts.assign_permissions <role_id> --grant <id> --revoke <id>
    python -m scripts.assign_permissions <role_id> --show
"""
import argparse
import asyncio
import sys

from app.core.database.engine import AsyncSessionLocal
from app.core.exceptions import LoadError, SaveError
from app.features.permissions.client import GrantStoreClient
from app.features.permissions.service import DatabaseGrantStore
from app.features.permissions.session import AssignmentSession
from app.features.permissions.tree import iter_nodes
from app.utils import get_logger


log = get_logger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("role_id")
    parser.add_argument("--grant", action="append", default=[], metavar="PERMISSION_ID")
    parser.add_argument("--revoke", action="append", default=[], metavar="PERMISSION_ID")
    parser.add_argument("--show", action="store_true", help="print the tree and exit")
    parser.add_argument("--api", action="store_true", help="use the REST API instead of the database")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace, store) -> int:
    session = AssignmentSession(store)
    try:
        forest = await session.open(args.role_id)
    except LoadError as exc:
        log.error(exc.message)
        return 1

    if args.show:
        for node in iter_nodes(forest):
            print(f"[{'x' if node.enabled else ' '}] {node.id}  {node.name}")
        session.cancel()
        return 0

    for permission_id in args.grant:
        session.toggle(permission_id, True)
    for permission_id in args.revoke:
        session.toggle(permission_id, False)

    try:
        granted = await session.submit()
    except SaveError as exc:
        log.error(exc.message)
        return 1
    print(f"Role {args.role_id} now holds {len(granted)} permissions")
    return 0


async def main(argv=None) -> int:
    args = parse_args(argv)
    if args.api:
        async with GrantStoreClient() as store:
            return await run(args, store)
    return await run(args, DatabaseGrantStore(AsyncSessionLocal))


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
