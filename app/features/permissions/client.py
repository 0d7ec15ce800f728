"""
HTTP grant store client.

Talks to GET/POST /roles/{role_id}/permissions with httpx.AsyncClient so an
assignment session can run outside the server process. Every failure (network,
non-2xx status, unparseable body) is raised as GrantStoreError.
"""
from __future__ import annotations

from typing import Any, Optional, Sequence

import httpx
from pydantic import ValidationError

from app.core import config
from app.core.exceptions import GrantStoreError
from app.features.permissions.schemas import Forest, PermissionNode
from app.utils import get_logger


log = get_logger(__name__)


def _error_detail(response: httpx.Response) -> str:
    """Best-effort error message from an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("error") or body)
    return str(body)


class GrantStoreClient:
    """
    Grant store over the REST API.

    Usage:
        async with GrantStoreClient(token=token) as store:
            session = AssignmentSession(store)
            await session.open(role_id)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        token = token if token is not None else config.API_TOKEN
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url or config.API_BASE_URL,
            headers=headers,
            timeout=timeout if timeout is not None else config.API_TIMEOUT,
            transport=transport,
        )

    async def __aenter__(self) -> GrantStoreClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def load_role_grants(self, role_id: str) -> Forest:
        data = await self._request("GET", f"/roles/{role_id}/permissions")
        if not isinstance(data, list):
            raise GrantStoreError(f"Malformed permission tree for role {role_id}: expected a list")
        try:
            return tuple(PermissionNode.model_validate(item) for item in data)
        except ValidationError as exc:
            raise GrantStoreError(f"Malformed permission tree for role {role_id}") from exc

    async def replace_role_grants(self, role_id: str, permission_ids: Sequence[str]) -> None:
        await self._request(
            "POST",
            f"/roles/{role_id}/permissions",
            json={"permissions": list(permission_ids)},
        )

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> Any:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            log.warning(f"{method} {path} failed: {exc!r}")
            raise GrantStoreError(f"Grant store unreachable: {exc}") from exc

        if response.is_error:
            detail = _error_detail(response)
            log.warning(f"{method} {path} returned {response.status_code}: {detail}")
            raise GrantStoreError(detail, status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise GrantStoreError(f"Invalid JSON from {method} {path}") from exc
