"""Unit tests for the Redis sliding-window rate limiter (mocked client)."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, Mock

import fakeredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from app.adapters.rate_limit.redis_store import SLIDING_WINDOW_SCRIPT, RedisSlidingWindowRateLimiter
from app.utils.simple_cache import EphemeralBlockCache


def _limiter(script_result, **kwargs) -> tuple[RedisSlidingWindowRateLimiter, AsyncMock]:
    script = AsyncMock()
    if isinstance(script_result, BaseException):
        script.side_effect = script_result
    else:
        script.return_value = script_result
    client = MagicMock()
    client.register_script.return_value = script

    kwargs.setdefault("limit", 200)
    kwargs.setdefault("window_seconds", 50)
    kwargs.setdefault("clock", Mock(return_value=1000.0))
    limiter = RedisSlidingWindowRateLimiter(client, **kwargs)
    client.register_script.assert_called_once_with(SLIDING_WINDOW_SCRIPT)
    return limiter, script


def test_admitted_request_passes_bucket_keys_and_window_args() -> None:
    limiter, script = _limiter([1, 150])

    result = asyncio.run(limiter.admit("203.0.113.7"))

    assert result.allowed is True
    assert result.remaining == 150
    assert result.limit == 200
    assert result.reset_at == 1050
    script.assert_awaited_once_with(
        keys=["ratelimit:203.0.113.7:20", "ratelimit:203.0.113.7:19"],
        args=[200, 0.0, 101_000],
    )


def test_custom_prefix() -> None:
    limiter, script = _limiter([1, 1], prefix="search:rl:")

    asyncio.run(limiter.admit("anonymous"))

    keys = script.await_args.kwargs["keys"]
    assert keys == ["search:rl:anonymous:20", "search:rl:anonymous:19"]


def test_rejected_request() -> None:
    limiter, _ = _limiter([0, 200, 0], clock=Mock(return_value=1010.0))

    result = asyncio.run(limiter.admit("k"))

    assert result.allowed is False
    assert result.remaining == 0
    assert result.retry_after_seconds == 40


def test_blocked_identifier_is_served_from_ephemeral_cache() -> None:
    cache = EphemeralBlockCache()
    clock = Mock(return_value=1000.0)
    limiter, script = _limiter([0, 200, 0], ephemeral_cache=cache, clock=clock)

    assert asyncio.run(limiter.admit("k")).allowed is False
    assert asyncio.run(limiter.admit("k")).allowed is False
    assert script.await_count == 1
    assert cache.stats()["hits"] == 1

    # Once the bucket resets, Redis is consulted again
    script.return_value = [1, 199]
    clock.return_value = 1050.0
    assert asyncio.run(limiter.admit("k")).allowed is True
    assert script.await_count == 2


def test_store_failure_fails_open_by_default() -> None:
    limiter, _ = _limiter(RedisConnectionError("connection refused"))

    result = asyncio.run(limiter.admit("k"))

    assert result.allowed is True


def test_store_failure_fails_closed_when_configured() -> None:
    limiter, _ = _limiter(RedisConnectionError("connection refused"), fail_open=False)

    result = asyncio.run(limiter.admit("k"))

    assert result.allowed is False
    assert result.retry_after_seconds == 50


def test_non_redis_errors_propagate() -> None:
    limiter, _ = _limiter(RuntimeError("bug"))

    with pytest.raises(RuntimeError):
        asyncio.run(limiter.admit("k"))


@pytest.mark.parametrize(
    "kwargs",
    [
        {"limit": 0},
        {"window_seconds": 0},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        _limiter([1, 1], **kwargs)


def test_empty_client_id_rejected() -> None:
    limiter, _ = _limiter([1, 1])

    with pytest.raises(ValueError):
        asyncio.run(limiter.admit(""))


def test_cached_block_lasts_only_until_estimate_decays() -> None:
    cache = EphemeralBlockCache()
    clock = Mock(return_value=1015.0)
    # Current bucket holds 1, previous bucket 2: over the limit until 1015.001s
    limiter, script = _limiter(
        [0, 1, 2], limit=2, window_seconds=10, ephemeral_cache=cache, clock=clock
    )

    result = asyncio.run(limiter.admit("k"))

    assert result.allowed is False
    assert result.retry_after_seconds == 1
    assert cache.blocked_until("k", 1_015_000) == 1_015_001

    script.return_value = [1, 0]
    clock.return_value = 1015.002
    assert asyncio.run(limiter.admit("k")).allowed is True
    assert script.await_count == 2


def test_block_at_bucket_start_lasts_one_millisecond() -> None:
    cache = EphemeralBlockCache()
    # First instant of a bucket whose predecessor used the whole budget
    limiter, _ = _limiter(
        [0, 0, 2], limit=2, window_seconds=10, ephemeral_cache=cache, clock=Mock(return_value=1010.0)
    )

    assert asyncio.run(limiter.admit("k")).allowed is False
    assert cache.blocked_until("k", 1_010_000) == 1_010_001
    assert cache.blocked_until("k", 1_010_001) is None


async def _admissions(limiter, clock: Mock, times: list[float]) -> list[bool]:
    decisions = []
    for now in times:
        clock.return_value = now
        decisions.append((await limiter.admit("k")).allowed)
    return decisions


@pytest.mark.parametrize(
    ("times", "expected"),
    [
        (
            [1000, 1000, 1010, 1015, 1015, 1019, 1029.9, 1031],
            [True, True, False, True, False, True, True, True],
        ),
        (
            [1000, 1000, 1000, 1005, 1010, 1012],
            [True, True, False, False, False, True],
        ),
    ],
)
@pytest.mark.parametrize("with_cache", [False, True])
def test_lua_script_matches_in_memory_limiter(times, expected, with_cache: bool) -> None:
    async def _run() -> tuple[list[bool], list[bool]]:
        clock = Mock()
        redis_limiter = RedisSlidingWindowRateLimiter(
            fakeredis.FakeAsyncRedis(decode_responses=True),
            limit=2,
            window_seconds=10,
            ephemeral_cache=EphemeralBlockCache() if with_cache else None,
            clock=clock,
        )
        memory_limiter = InMemorySlidingWindowRateLimiter(limit=2, window_seconds=10, clock=clock)
        return (
            await _admissions(redis_limiter, clock, times),
            await _admissions(memory_limiter, clock, times),
        )

    from_redis, from_memory = asyncio.run(_run())

    assert from_redis == expected
    assert from_memory == expected


def test_lua_script_leaves_counter_unchanged_on_rejection_and_sets_ttl() -> None:
    async def _run() -> tuple[list[bool], str | None, int]:
        client = fakeredis.FakeAsyncRedis(decode_responses=True)
        clock = Mock()
        limiter = RedisSlidingWindowRateLimiter(client, limit=2, window_seconds=10, clock=clock)
        decisions = await _admissions(limiter, clock, [1000, 1000, 1000, 1000])
        return decisions, await client.get("ratelimit:k:100"), await client.pttl("ratelimit:k:100")

    decisions, counter, ttl_ms = asyncio.run(_run())

    assert decisions == [True, True, False, False]
    assert counter == "2"
    # 2W + 1s
    assert 20_000 < ttl_ms <= 21_000


def test_lua_script_reports_remaining_budget() -> None:
    async def _run() -> list[int]:
        clock = Mock(return_value=1000.0)
        limiter = RedisSlidingWindowRateLimiter(
            fakeredis.FakeAsyncRedis(decode_responses=True), limit=3, window_seconds=60, clock=clock
        )
        return [(await limiter.admit("k")).remaining for _ in range(3)]

    assert asyncio.run(_run()) == [2, 1, 0]
