import httpx
import pytest

from casamatch.adapters.clients.http_resilience import CircuitOpenError, ResilientHttpClient


def _client(handler, **kwargs):
    kwargs.setdefault("max_retries", 2)
    kwargs.setdefault("backoff_base_s", 0)
    kwargs.setdefault("rate_limit_rps", 0)
    kwargs.setdefault("fail_threshold", 5)
    kwargs.setdefault("reset_s", 60)
    return ResilientHttpClient(transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.asyncio
async def test_retries_retryable_status_then_succeeds():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503)
        return httpx.Response(200, json={"ok": True})

    resp = await _client(handler).get("https://api.test/x")
    assert resp.json() == {"ok": True}
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(401)

    with pytest.raises(httpx.HTTPStatusError):
        await _client(handler).get("https://api.test/x")
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_circuit_opens_after_repeated_failures():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("down", request=request)

    client = _client(handler, max_retries=0, fail_threshold=2)
    for _ in range(2):
        with pytest.raises(httpx.ConnectError):
            await client.get("https://api.test/x")

    with pytest.raises(CircuitOpenError):
        await client.get("https://api.test/x")
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_circuit_half_opens_after_reset():
    state = {"fail": True}

    def handler(request):
        if state["fail"]:
            return httpx.Response(500)
        return httpx.Response(200)

    client = _client(handler, max_retries=0, fail_threshold=1, reset_s=0)
    with pytest.raises(httpx.HTTPStatusError):
        await client.get("https://api.test/x")

    state["fail"] = False
    assert (await client.get("https://api.test/x")).status_code == 200
    assert client.circuit_is_open() is False
