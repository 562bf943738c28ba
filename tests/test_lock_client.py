"""Tests for named in-process locks and transient retries."""
import asyncio

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from qrhunt.utils.lock_client import LockClient
from qrhunt.utils.retry import is_transient_error, retry_transient


async def test_same_name_serializes_critical_sections():
    client = LockClient(default_timeout=5)
    order = []

    async def worker(label):
        async with client.lock("team:1"):
            order.append(f"{label}-in")
            await asyncio.sleep(0.01)
            order.append(f"{label}-out")

    await asyncio.gather(worker("a"), worker("b"))

    assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])


async def test_different_names_do_not_block_each_other():
    client = LockClient(default_timeout=5)

    async with client.lock("team:1"):
        async with client.lock("team:2"):
            assert client.is_locked("team:1")
            assert client.is_locked("team:2")


async def test_lock_times_out():
    client = LockClient(default_timeout=5)

    async with client.lock("winner:1"):
        with pytest.raises(TimeoutError):
            async with client.lock("winner:1", timeout=0.05):
                pass


async def test_idle_locks_are_released():
    client = LockClient()

    async with client.lock("team:1"):
        assert client.active_lock_count() == 1

    assert client.active_lock_count() == 0
    assert not client.is_locked("team:1")


def _operational_error():
    return OperationalError("INSERT INTO scans", {}, Exception("database is locked"))


async def test_retry_transient_retries_then_succeeds():
    attempts = []
    rollbacks = []

    async def operation():
        attempts.append(1)
        if len(attempts) < 3:
            raise _operational_error()
        return "ok"

    async def on_retry():
        rollbacks.append(1)

    result = await retry_transient(operation, attempts=3, backoff_seconds=0, on_retry=on_retry)

    assert result == "ok"
    assert len(attempts) == 3
    assert len(rollbacks) == 2


async def test_retry_transient_gives_up_after_attempts():
    async def operation():
        raise _operational_error()

    with pytest.raises(OperationalError):
        await retry_transient(operation, attempts=2, backoff_seconds=0)


async def test_retry_transient_does_not_retry_integrity_errors():
    attempts = []

    async def operation():
        attempts.append(1)
        raise IntegrityError("INSERT INTO scans", {}, Exception("UNIQUE constraint failed"))

    with pytest.raises(IntegrityError):
        await retry_transient(operation, attempts=3, backoff_seconds=0)

    assert len(attempts) == 1
    assert not is_transient_error(IntegrityError("x", {}, Exception("y")))
    assert is_transient_error(_operational_error())
