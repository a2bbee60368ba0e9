import asyncio

import pytest

from gephclient.fronts import MultiTransport


class Echo:
    def __init__(self, tag):
        self.tag = tag
        self.calls = []

    async def call(self, request):
        self.calls.append(request)
        return (self.tag, request)


class Failing:
    def __init__(self):
        self.calls = 0

    async def call(self, request):
        self.calls += 1
        raise ConnectionError("front down")


class Slow:
    async def call(self, request):
        await asyncio.sleep(1.0)
        return "late"


def test_empty_transport_list_rejected():
    with pytest.raises(ValueError):
        MultiTransport([], 3.0, 30.0)


@pytest.mark.asyncio
async def test_single_transport_returns_response():
    front = Echo("a")
    multi = MultiTransport([front], 3.0, 30.0)
    assert await multi.call("ping") == ("a", "ping")
    assert front.calls == ["ping"]


@pytest.mark.asyncio
async def test_fails_over_to_working_transport():
    bad, good = Failing(), Echo("good")
    multi = MultiTransport([bad, good], 3.0, 30.0)
    assert await multi.call("req") == ("good", "req")
    assert good.calls == ["req"]
    assert bad.calls <= 1


@pytest.mark.asyncio
async def test_sticks_with_working_transport_after_failover():
    bad, good = Failing(), Echo("good")
    multi = MultiTransport([bad, good], 3.0, 30.0)
    await multi.call("one")
    failures = bad.calls
    assert await multi.call("two") == ("good", "two")
    assert bad.calls == failures


@pytest.mark.asyncio
async def test_last_error_raised_when_backoff_expires():
    multi = MultiTransport([Failing()], 3.0, 0.0)
    with pytest.raises(ConnectionError, match="front down"):
        await multi.call("req")


@pytest.mark.asyncio
async def test_slow_transport_times_out():
    multi = MultiTransport([Slow()], 0.05, 0.0)
    with pytest.raises(TimeoutError, match="timeout on one of the transports"):
        await multi.call("req")