"""Tests for DeviceCodeFlow against a mocked identity provider (httpx.MockTransport)."""

from __future__ import annotations

import asyncio
from urllib.parse import parse_qs

import httpx
import pytest

from src.auth.device_code import DEVICE_CODE_GRANT, DeviceCodeFlow, SimulatedDeviceCodeFlow
from src.auth.models import CredentialSourceType, DeviceCodeChallenge
from src.infra.errors import AuthenticationError

_AUTHORITY = "https://login.example.com"
_DEVICE_CODE = {
    "device_code": "dev-123",
    "user_code": "ABCD-EFGH",
    "verification_uri": "https://microsoft.com/devicelogin",
    "expires_in": 900,
    "interval": 5,
    "message": "To sign in, use a web browser to open https://microsoft.com/devicelogin and enter ABCD-EFGH",
}


class _FakeTime:
    """Monotonic clock advanced only by the flow's own sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _provider(token_responses: list[httpx.Response], *, device_code: dict | None = None):
    requests: list[httpx.Request] = []
    pending = list(token_responses)

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path.endswith("/devicecode"):
            return httpx.Response(200, json=device_code or _DEVICE_CODE)
        if request.url.path.endswith("/token"):
            return pending.pop(0) if pending else httpx.Response(400, json={"error": "authorization_pending"})
        return httpx.Response(404)

    return httpx.MockTransport(handler), requests


def _flow(transport: httpx.MockTransport, fake: _FakeTime, prompts: list, **kwargs) -> DeviceCodeFlow:
    return DeviceCodeFlow(
        authority_host=_AUTHORITY,
        tenant_id="contoso",
        client_id="client-1",
        transport=transport,
        sleep=fake.sleep,
        clock=fake.clock,
        prompt=prompts.append,
        **kwargs,
    )


def _pending() -> httpx.Response:
    return httpx.Response(400, json={"error": "authorization_pending"})


def _token(expires_in: int = 3600) -> httpx.Response:
    return httpx.Response(
        200, json={"access_token": "at-1", "expires_in": expires_in, "scope": "User.Read Team.ReadBasic.All"}
    )


class TestDeviceCodeFlow:
    @pytest.mark.asyncio
    async def test_success_after_pending(self) -> None:
        transport, requests = _provider([_pending(), _pending(), _token()])
        fake, prompts = _FakeTime(), []

        session = await _flow(transport, fake, prompts).run(["User.Read"])

        assert session.access_token == "at-1"
        assert session.source is CredentialSourceType.device_code
        assert session.tenant_id == "contoso"
        assert session.scopes == ("User.Read", "Team.ReadBasic.All")
        assert fake.sleeps == [5, 5, 5]

        (challenge,) = prompts
        assert isinstance(challenge, DeviceCodeChallenge)
        assert challenge.user_code == "ABCD-EFGH"
        assert challenge.verification_uri == "https://microsoft.com/devicelogin"

        device_req = requests[0]
        assert str(device_req.url) == f"{_AUTHORITY}/contoso/oauth2/v2.0/devicecode"
        assert parse_qs(device_req.content.decode()) == {"client_id": ["client-1"], "scope": ["User.Read"]}
        token_form = parse_qs(requests[1].content.decode())
        assert token_form["grant_type"] == [DEVICE_CODE_GRANT]
        assert token_form["device_code"] == ["dev-123"]

    @pytest.mark.asyncio
    async def test_slow_down_increases_interval(self) -> None:
        transport, _ = _provider([httpx.Response(400, json={"error": "slow_down"}), _pending(), _token()])
        fake = _FakeTime()
        await _flow(transport, fake, []).run(["User.Read"])
        assert fake.sleeps == [5, 10, 10]

    @pytest.mark.asyncio
    async def test_declined(self) -> None:
        transport, _ = _provider([httpx.Response(400, json={"error": "authorization_declined"})])
        with pytest.raises(AuthenticationError) as exc_info:
            await _flow(transport, _FakeTime(), []).run(["User.Read"])
        assert exc_info.value.code == "DEVICE_CODE_DECLINED"

    @pytest.mark.asyncio
    async def test_expired_token(self) -> None:
        transport, _ = _provider([httpx.Response(400, json={"error": "expired_token"})])
        with pytest.raises(AuthenticationError) as exc_info:
            await _flow(transport, _FakeTime(), []).run(["User.Read"])
        assert exc_info.value.code == "DEVICE_CODE_TIMEOUT"

    @pytest.mark.asyncio
    async def test_deadline_capped_by_configured_timeout(self) -> None:
        transport, requests = _provider([])
        fake = _FakeTime()
        with pytest.raises(AuthenticationError) as exc_info:
            await _flow(transport, fake, [], timeout_seconds=12).run(["User.Read"])
        assert exc_info.value.code == "DEVICE_CODE_TIMEOUT"
        # Polls at t=5 and t=10; at t=15 the deadline (12s) has passed.
        token_polls = [r for r in requests if r.url.path.endswith("/token")]
        assert len(token_polls) == 2

    @pytest.mark.asyncio
    async def test_deadline_from_provider_expiry(self) -> None:
        transport, requests = _provider([], device_code={**_DEVICE_CODE, "expires_in": 6})
        with pytest.raises(AuthenticationError, match="did not complete"):
            await _flow(transport, _FakeTime(), []).run(["User.Read"])
        assert len([r for r in requests if r.url.path.endswith("/token")]) == 1

    @pytest.mark.asyncio
    async def test_unexpected_error(self) -> None:
        transport, _ = _provider(
            [httpx.Response(400, json={"error": "invalid_grant", "error_description": "AADSTS70000"})]
        )
        with pytest.raises(AuthenticationError, match="AADSTS70000") as exc_info:
            await _flow(transport, _FakeTime(), []).run(["User.Read"])
        assert exc_info.value.code == "DEVICE_CODE_FAILED"

    @pytest.mark.asyncio
    async def test_device_code_request_rejected(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "invalid_client", "error_description": "bad client"})

        with pytest.raises(AuthenticationError, match="bad client"):
            await _flow(httpx.MockTransport(handler), _FakeTime(), []).run(["User.Read"])

    @pytest.mark.asyncio
    async def test_async_prompt_awaited(self) -> None:
        transport, _ = _provider([_token()])
        seen: list[str] = []

        async def prompt(challenge: DeviceCodeChallenge) -> None:
            seen.append(challenge.user_code)

        fake = _FakeTime()
        flow = DeviceCodeFlow(
            authority_host=_AUTHORITY, tenant_id="contoso", client_id="client-1",
            transport=transport, sleep=fake.sleep, clock=fake.clock, prompt=prompt,
        )
        await flow.run(["User.Read"])
        assert seen == ["ABCD-EFGH"]

    @pytest.mark.asyncio
    async def test_wait_is_cancellable(self) -> None:
        transport, _ = _provider([])
        flow = DeviceCodeFlow(
            authority_host=_AUTHORITY, tenant_id="contoso", client_id="client-1",
            transport=transport, prompt=lambda _c: None,
        )
        task = asyncio.create_task(flow.run(["User.Read"]))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


class TestSimulatedFlow:
    @pytest.mark.asyncio
    async def test_completes_immediately(self) -> None:
        flow = SimulatedDeviceCodeFlow(tenant_id="sim")
        session = await flow.run(["User.Read"])
        assert session.access_token == "simulated-token-1"
        assert session.tenant_id == "sim"
        assert session.is_valid()
        assert flow.runs == 1
