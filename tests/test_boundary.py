"""Tests for the signed HTTP execution boundary client."""

from __future__ import annotations

import json

import httpx
import pytest

from packages.core.boundary import HttpBoundaryClient, payload_digest, sign_request, verify_signature

KEY = b"boundary-test-key"


def make_client(handler) -> HttpBoundaryClient:
    transport = httpx.MockTransport(handler)
    http = httpx.AsyncClient(base_url="http://executor.local", transport=transport)
    return HttpBoundaryClient("http://executor.local", KEY, client=http)


class TestSigning:
    def test_digest_ignores_key_order(self) -> None:
        assert payload_digest({"a": 1, "b": [2]}) == payload_digest({"b": [2], "a": 1})

    def test_signature_round_trip(self) -> None:
        client = HttpBoundaryClient("http://executor.local", KEY)
        request = client.build_request("email.archive", {"message_ids": ["m1"]})

        assert request["action"] == "email.archive"
        assert request["source"] == "core"
        assert verify_signature(KEY, request)

    def test_tampered_payload_fails_verification(self) -> None:
        client = HttpBoundaryClient("http://executor.local", KEY)
        request = client.build_request("email.archive", {"message_ids": ["m1"]})
        request["payload"] = {"message_ids": ["m1", "m2"]}

        assert not verify_signature(KEY, request)

    def test_wrong_key_fails_verification(self) -> None:
        signature = sign_request(KEY, "id-1", "2026-01-01T00:00:00+00:00", "email.send", {})
        request = {
            "id": "id-1",
            "timestamp": "2026-01-01T00:00:00+00:00",
            "action": "email.send",
            "payload": {},
            "signature": signature,
        }
        assert verify_signature(KEY, request)
        assert not verify_signature(b"other-key", request)

    def test_missing_key_rejected(self) -> None:
        with pytest.raises(ValueError):
            HttpBoundaryClient("http://executor.local", b"")


class TestDispatch:
    """Tests for mapping executor responses onto DispatchResult."""

    @pytest.mark.asyncio
    async def test_success(self) -> None:
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"status": "success", "data": {"archived": 2}})

        client = make_client(handler)
        result = await client.dispatch("email.archive", {"message_ids": ["m1", "m2"]})
        await client.close()

        assert result.success is True
        assert result.data == {"archived": 2}
        assert len(seen) == 1
        assert seen[0]["payload"] == {"message_ids": ["m1", "m2"]}
        assert verify_signature(KEY, seen[0])

    @pytest.mark.asyncio
    async def test_executor_error_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={"status": "error", "error": {"code": "SMTP_DOWN", "message": "Mail server unreachable"}},
            )

        result = await make_client(handler).dispatch("email.send", {"to": ["a@b.com"]})

        assert result.success is False
        assert result.error.code == "SMTP_DOWN"
        assert result.error.message == "Mail server unreachable"

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, text="bad signature")

        result = await make_client(handler).dispatch("email.send", {})

        assert result.success is False
        assert result.error.code == "HTTP_401"

    @pytest.mark.asyncio
    async def test_non_json_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>oops</html>")

        result = await make_client(handler).dispatch("email.send", {})
        assert result.error.code == "INVALID_RESPONSE"

    @pytest.mark.asyncio
    async def test_transport_failure_is_not_retried(self) -> None:
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            raise httpx.ConnectError("connection refused", request=request)

        result = await make_client(handler).dispatch("email.send", {})

        assert result.success is False
        assert result.error.code == "BOUNDARY_UNAVAILABLE"
        assert attempts == 1
