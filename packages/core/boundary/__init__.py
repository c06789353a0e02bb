"""Execution boundary client.

The agent core never touches the network or third-party services itself.
Every side effect is handed to a separate execution process as a signed
action request; the process answers with a DispatchResult.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from packages.core.schemas.models import DispatchResult, new_id, utcnow

logger = logging.getLogger(__name__)


class ExecutionBoundaryClient(ABC):
    """Dispatches actions across the execution boundary."""

    @abstractmethod
    async def dispatch(self, action_type: str, payload: dict[str, Any]) -> DispatchResult:
        """Send one action and wait for its result.

        No timeout and no retry at this layer: a failure on the other side
        comes back as ``DispatchResult(success=False, ...)``.
        """
        ...

    async def close(self) -> None:
        """Release any held connections."""


def payload_digest(payload: dict[str, Any]) -> str:
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def sign_request(key: bytes, request_id: str, timestamp: str, action_type: str, payload: dict[str, Any]) -> str:
    """HMAC-SHA256 over the request identity and a digest of its payload."""
    message = "|".join([request_id, timestamp, action_type, payload_digest(payload)])
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_signature(key: bytes, request: dict[str, Any]) -> bool:
    expected = sign_request(
        key,
        request["id"],
        request["timestamp"],
        request["action"],
        request.get("payload") or {},
    )
    return hmac.compare_digest(expected, request.get("signature", ""))


class HttpBoundaryClient(ExecutionBoundaryClient):
    """Posts signed action requests to the execution process over HTTP."""

    def __init__(
        self,
        base_url: str,
        signing_key: bytes,
        client: httpx.AsyncClient | None = None,
    ):
        if not signing_key:
            raise ValueError("A signing key is required for the execution boundary")
        self.base_url = base_url.rstrip("/")
        self.signing_key = signing_key
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=None)
        return self._client

    def build_request(self, action_type: str, payload: dict[str, Any]) -> dict[str, Any]:
        request_id = new_id()
        timestamp = utcnow().isoformat()
        return {
            "id": request_id,
            "timestamp": timestamp,
            "action": action_type,
            "payload": payload,
            "source": "core",
            "signature": sign_request(self.signing_key, request_id, timestamp, action_type, payload),
        }

    async def dispatch(self, action_type: str, payload: dict[str, Any]) -> DispatchResult:
        request = self.build_request(action_type, payload)
        try:
            response = await self.client.post("/actions", json=request)
        except httpx.HTTPError as e:
            logger.warning("Boundary dispatch of %s failed: %s", action_type, e)
            return DispatchResult.failure("BOUNDARY_UNAVAILABLE", str(e))

        if response.status_code >= 400:
            logger.warning("Boundary rejected %s: HTTP %d", action_type, response.status_code)
            return DispatchResult.failure(f"HTTP_{response.status_code}", response.text[:500])

        try:
            body = response.json()
        except ValueError:
            return DispatchResult.failure("INVALID_RESPONSE", "Boundary returned a non-JSON body")

        if body.get("status") == "success":
            return DispatchResult(success=True, data=body.get("data"))

        error = body.get("error") or {}
        return DispatchResult.failure(
            error.get("code", str(body.get("status", "error")).upper()),
            error.get("message", "Action failed"),
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


__all__ = [
    "ExecutionBoundaryClient",
    "HttpBoundaryClient",
    "payload_digest",
    "sign_request",
    "verify_signature",
]
