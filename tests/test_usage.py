"""Tests for the daily API usage counter and quota guard."""

import asyncio

import pytest

from domatrend.services.usage import QuotaExceededError, UsageCounter


async def test_increment_accumulates_per_service_and_day(session_factory, clock):
    usage = UsageCounter(session_factory, clock=clock)
    today = usage.today()

    await usage.increment("svc", today)
    await usage.increment("svc", today)
    await usage.increment("other", today)

    assert await usage.get_count("svc", today) == 2
    assert await usage.get_count("other", today) == 1

    clock.advance(days=1)
    assert await usage.get_count("svc", usage.today()) == 0


async def test_guard_raises_at_limit(session_factory, clock):
    usage = UsageCounter(session_factory, clock=clock)

    for _ in range(2):
        async with usage.guard("svc", daily_limit=2) as record:
            await record()

    with pytest.raises(QuotaExceededError):
        async with usage.guard("svc", daily_limit=2):
            pytest.fail("guard must not yield once the limit is reached")

    assert await usage.get_count("svc", usage.today()) == 2


async def test_guard_without_record_does_not_count(session_factory, clock):
    usage = UsageCounter(session_factory, clock=clock)

    async with usage.guard("svc", daily_limit=1):
        pass

    assert await usage.get_count("svc", usage.today()) == 0


async def test_concurrent_callers_never_exceed_limit(session_factory, clock):
    usage = UsageCounter(session_factory, clock=clock)
    calls = 0

    async def attempt():
        nonlocal calls
        try:
            async with usage.guard("svc", daily_limit=3) as record:
                calls += 1
                await asyncio.sleep(0)
                await record()
        except QuotaExceededError:
            pass

    await asyncio.gather(*(attempt() for _ in range(8)))

    assert calls == 3
    assert await usage.get_count("svc", usage.today()) == 3
