"""Tests for session-scoped logging context."""

import asyncio

import pytest
import structlog

from search_session.observability import bind_session_context, clear_session_context, get_session_logger


def bound_session_id() -> str | None:
    return structlog.contextvars.get_contextvars().get("session_id")


def test_bind_and_clear_session_context():
    bind_session_context("abc123")
    try:
        assert bound_session_id() == "abc123"
    finally:
        clear_session_context()

    assert bound_session_id() is None


@pytest.mark.anyio
async def test_session_context_isolation():
    """Each async task sees only its own session id."""

    async def worker(session_id: str) -> None:
        bind_session_context(session_id)
        await asyncio.sleep(0)
        assert bound_session_id() == session_id
        clear_session_context()
        await asyncio.sleep(0)
        assert bound_session_id() is None

    await asyncio.gather(asyncio.create_task(worker("s1")), asyncio.create_task(worker("s2")))


def test_session_logger_carries_context():
    with structlog.testing.capture_logs() as logs:
        bind_session_context("xyz")
        try:
            get_session_logger("search_session.test").info("search_issued", query="cats")
        finally:
            clear_session_context()

    assert logs[0]["event"] == "search_issued"
    assert logs[0]["query"] == "cats"
