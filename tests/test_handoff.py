"""
Tests for the Token Hand-off

The hand-off must deliver each token to exactly one waiter, never block
the producer, and never hold more than one pending token.
"""

import asyncio

import pytest

from termchat import TokenHandoff


@pytest.mark.asyncio
async def test_put_before_wait():
    handoff = TokenHandoff()
    handoff.put("abc")
    assert handoff.pending
    assert await handoff.wait() == "abc"
    assert not handoff.pending


@pytest.mark.asyncio
async def test_wait_before_put():
    handoff = TokenHandoff()
    waiter = asyncio.create_task(handoff.wait())
    await asyncio.sleep(0)
    assert not waiter.done()

    handoff.put("abc")

    assert await waiter == "abc"


@pytest.mark.asyncio
async def test_put_without_waiter_keeps_only_latest():
    handoff = TokenHandoff()
    handoff.put("old")
    handoff.put("new")

    assert await handoff.wait() == "new"
    assert not handoff.pending


@pytest.mark.asyncio
async def test_token_goes_to_exactly_one_waiter():
    handoff = TokenHandoff()
    first = asyncio.create_task(handoff.wait())
    second = asyncio.create_task(handoff.wait())
    await asyncio.sleep(0)

    handoff.put("abc")
    for _ in range(3):
        await asyncio.sleep(0)

    done = [task for task in (first, second) if task.done()]
    assert len(done) == 1
    assert done[0].result() == "abc"

    handoff.put("def")
    results = sorted(await asyncio.gather(first, second))
    assert results == ["abc", "def"]


@pytest.mark.asyncio
async def test_rearm_drops_stale_token():
    handoff = TokenHandoff()
    assert handoff.rearm() is None

    handoff.put("stale")
    assert handoff.rearm() == "stale"
    assert not handoff.pending

    waiter = asyncio.create_task(handoff.wait())
    handoff.put("fresh")
    assert await waiter == "fresh"
