from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from device_heartbeat.domain.heartbeat import HeartbeatState, QueueStats
from device_heartbeat.infrastructure.redis.transition_queue import RedisTransitionQueue

pytestmark = pytest.mark.anyio("asyncio")

NOW_SECONDS = 1_760_000_000
NOW_MS = NOW_SECONDS * 1000 + 250


class FakePipeline:
    """Records queued commands; ``execute`` returns canned results."""

    def __init__(self, results: list[Any]) -> None:
        self.commands: list[tuple[str, tuple[Any, ...]]] = []
        self._results = results

    def __getattr__(self, name: str):
        def queue(*args: Any, **kwargs: Any) -> FakePipeline:
            self.commands.append((name, args))
            return self

        return queue

    async def execute(self) -> list[Any]:
        return self._results

    async def __aenter__(self) -> FakePipeline:
        return self

    async def __aexit__(self, *exc: object) -> None:
        return None


def _client(*pipeline_results: list[Any]) -> tuple[MagicMock, list[FakePipeline], AsyncMock]:
    client = MagicMock()
    client.time = AsyncMock(return_value=(NOW_SECONDS, 250_000))
    pipelines = [FakePipeline(results) for results in pipeline_results]
    client.pipeline.side_effect = pipelines
    script = AsyncMock(return_value=[])
    client.register_script.return_value = script
    return client, pipelines, script


async def test_send_schedules_message_by_server_time() -> None:
    client, (pipe,), _ = _client([1, 1, 1])
    queue = RedisTransitionQueue(client)

    message_id = await queue.send("dev-1", HeartbeatState.TIMEOUT, 3)

    zadd, hset, hincrby = pipe.commands
    assert zadd == ("zadd", ("device-online-state:expired", {message_id: NOW_MS + 3000}))
    assert hset[1][:2] == ("device-online-state:expired:Q", message_id)
    assert json.loads(hset[1][2]) == {"uuid": "dev-1", "nextState": "timeout"}
    assert hincrby == ("hincrby", ("device-online-state:expired:Q", "totalsent", 1))


async def test_send_rejects_negative_delay() -> None:
    client, _, _ = _client()

    with pytest.raises(ValueError):
        await RedisTransitionQueue(client).send("dev-1", HeartbeatState.TIMEOUT, -1)


async def test_receive_leases_message_for_visibility_timeout() -> None:
    client, _, script = _client()
    script.return_value = ["abc", '{"uuid":"dev-1","nextState":"offline"}', 2, str(NOW_MS - 30_000)]
    queue = RedisTransitionQueue(client)

    message = await queue.receive(30)

    script.assert_awaited_once_with(
        keys=["device-online-state:expired", "device-online-state:expired:Q"],
        args=[NOW_MS, NOW_MS + 30_000],
    )
    assert message is not None
    assert message.message_id == "abc"
    assert message.receive_count == 2
    assert message.first_received_at == datetime.fromtimestamp((NOW_MS - 30_000) / 1000, tz=UTC)


async def test_receive_returns_none_when_nothing_due() -> None:
    client, _, _ = _client()

    assert await RedisTransitionQueue(client).receive(30) is None


async def test_delete_reports_whether_message_existed() -> None:
    client, (first, second), _ = _client([1, 1], [0, 0])
    queue = RedisTransitionQueue(client)

    assert await queue.delete("abc") is True
    assert await queue.delete("abc") is False
    assert first.commands == [
        ("zrem", ("device-online-state:expired", "abc")),
        ("hdel", ("device-online-state:expired:Q", "abc", "abc:rc", "abc:fr")),
    ]


async def test_stats_counts_hidden_messages_after_now() -> None:
    client, (pipe,), _ = _client([["12", "7"], 4, 3])

    stats = await RedisTransitionQueue(client).stats()

    assert stats == QueueStats(msgs=4, hidden_msgs=3, total_sent=12, total_recv=7)
    assert pipe.commands[2] == ("zcount", ("device-online-state:expired", f"({NOW_MS}", "+inf"))


async def test_stats_tolerates_missing_counters() -> None:
    client, _, _ = _client([[None, None], 0, 0])

    stats = await RedisTransitionQueue(client).stats()

    assert stats == QueueStats(msgs=0, hidden_msgs=0, total_sent=0, total_recv=0)


async def test_ensure_queue_initialises_counters_once() -> None:
    client, (pipe,), _ = _client([1, 1, 1])

    await RedisTransitionQueue(client, queue_name="custom").ensure_queue()

    assert [command for command, _ in pipe.commands] == ["hsetnx", "hsetnx", "hsetnx"]
    assert pipe.commands[0][1] == ("device-online-state:custom:Q", "created", NOW_SECONDS)
