import asyncio

import pytest

from mini_server.database.locks import KeyedLocks, ResetGate


@pytest.mark.asyncio
async def test_reset_gate_waits_for_shared_holders():
    gate = ResetGate()
    order = []

    async def reader(release: asyncio.Event):
        async with gate.shared():
            order.append("read-start")
            await release.wait()
            order.append("read-end")

    async def writer():
        async with gate.exclusive():
            order.append("reset")

    release = asyncio.Event()
    read_task = asyncio.create_task(reader(release))
    await asyncio.sleep(0)
    write_task = asyncio.create_task(writer())
    await asyncio.sleep(0.01)

    assert order == ["read-start"]
    assert not write_task.done()

    release.set()
    await asyncio.gather(read_task, write_task)
    assert order == ["read-start", "read-end", "reset"]


@pytest.mark.asyncio
async def test_reset_gate_blocks_new_readers_while_reset_is_pending():
    gate = ResetGate()
    order = []
    release = asyncio.Event()

    async def first_reader():
        async with gate.shared():
            await release.wait()
            order.append("first")

    async def writer():
        async with gate.exclusive():
            order.append("reset")

    async def late_reader():
        async with gate.shared():
            order.append("late")

    tasks = [asyncio.create_task(first_reader())]
    await asyncio.sleep(0)
    tasks.append(asyncio.create_task(writer()))
    await asyncio.sleep(0)
    tasks.append(asyncio.create_task(late_reader()))
    await asyncio.sleep(0.01)
    assert order == []

    release.set()
    await asyncio.gather(*tasks)
    assert order == ["first", "reset", "late"]


@pytest.mark.asyncio
async def test_shared_holders_do_not_block_each_other():
    gate = ResetGate()
    inside = asyncio.Event()
    both = asyncio.Event()

    async def holder(mark: asyncio.Event, wait_for: asyncio.Event):
        async with gate.shared():
            mark.set()
            await asyncio.wait_for(wait_for.wait(), timeout=1)

    await asyncio.gather(holder(inside, both), holder(both, inside))
    assert gate.active == 0


@pytest.mark.asyncio
async def test_keyed_locks_serialize_the_same_key():
    locks = KeyedLocks()
    trace = []

    async def critical(name: str):
        async with locks.hold("project-1"):
            trace.append(f"{name}-in")
            await asyncio.sleep(0.01)
            trace.append(f"{name}-out")

    await asyncio.gather(critical("a"), critical("b"))

    assert trace == ["a-in", "a-out", "b-in", "b-out"]
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_keyed_locks_let_different_keys_proceed():
    locks = KeyedLocks()
    entered = asyncio.Event()

    async def first():
        async with locks.hold("a"):
            await asyncio.wait_for(entered.wait(), timeout=1)

    async def second():
        async with locks.hold("b"):
            entered.set()

    await asyncio.gather(first(), second())
    assert len(locks) == 0
