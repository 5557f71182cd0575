from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Tuple

import requests

from core.settings import API
from services.sync_engine import ApplyResult


logger = logging.getLogger("smartfarmer.sync.remote")

METHODS = {
    "create": "POST",
    "update": "PUT",
    "delete": "DELETE",
}


def _group_id(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    value = payload.get("group_id") or payload.get("groupId")
    return str(value) if value else None


def build_request(table_name: str, record_id: str, operation: str, payload: Any) -> Tuple[str, str]:
    """Return ``(method, path)`` of the REST call replaying a queued mutation."""

    method = METHODS.get(operation)
    if method is None:
        raise ValueError(f"Unsupported operation: {operation}")

    if table_name == "messages":
        group_id = _group_id(payload)
        if not group_id:
            raise ValueError("message mutations need a group_id in the payload")
        collection = f"/api/groups/{group_id}/messages"
    else:
        collection = f"/api/{table_name}"

    if operation == "create":
        return method, collection
    return method, f"{collection}/{record_id}"


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return f"HTTP {response.status_code}: {body['message']}"
    return f"HTTP {response.status_code}"


class HttpRemoteApplier:
    """Replays queued mutations against the Smart Farmer REST backend."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        token_provider: Callable[[], Optional[str]] = lambda: None,
        timeout: float = API.timeout_sec,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or API.base_url).rstrip("/")
        self.token_provider = token_provider
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def _headers(self) -> Dict[str, str]:
        token = self.token_provider()
        return {"Authorization": f"Bearer {token}"} if token else {}

    def apply(self, table_name: str, record_id: str, operation: str, payload: Any) -> ApplyResult:
        try:
            method, path = build_request(table_name, record_id, operation, payload)
        except ValueError as exc:
            return ApplyResult(False, str(exc))

        body = payload if operation != "delete" else None
        try:
            response = self.session.request(
                method=method,
                url=f"{self.base_url}{path}",
                json=body,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            return ApplyResult(False, str(exc))

        if response.ok:
            return ApplyResult(True)
        if operation == "delete" and response.status_code == 404:
            # already gone on the server
            return ApplyResult(True)
        error = _error_message(response)
        logger.warning("%s %s rejected: %s", method, path, error)
        return ApplyResult(False, error)

    async def __call__(
        self, table_name: str, record_id: str, operation: str, payload: Any
    ) -> ApplyResult:
        return await asyncio.to_thread(self.apply, table_name, record_id, operation, payload)


__all__ = ["HttpRemoteApplier", "build_request"]
