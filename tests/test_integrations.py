"""Tests for the httpx, DB-API, handler and job adapters."""

from __future__ import annotations

import functools
import sqlite3
from unittest.mock import MagicMock

import httpx
import pytest

import timebox
from timebox.exceptions import BudgetExceeded
from timebox.integrations import JobMiddleware, TimeboxConnection, TimeboxCursor, timeboxed
from timebox.integrations.http import AsyncTimeboxClient, TimeboxClient, capped_timeout
from timebox.scope import BudgetStack


# ---------------------------------------------------------------------------
# httpx
# ---------------------------------------------------------------------------

def _client(seen: list, timeout=30.0) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    return httpx.Client(transport=httpx.MockTransport(handler), timeout=timeout)


def _all(seconds):
    return {"connect": seconds, "read": seconds, "write": seconds, "pool": seconds}


class TestHttpClient:
    def test_untouched_without_budget(self):
        seen = []
        with TimeboxClient(_client(seen)) as client:
            response = client.get("http://example.test/users")
        assert response.json() == {"ok": True}
        assert seen[0].extensions["timeout"] == _all(30.0)

    def test_timeouts_capped_at_remaining_time(self, clock):
        seen = []
        client = TimeboxClient(_client(seen))
        with timebox.scope(5):
            clock.advance(2)
            client.get("http://example.test/users")
        assert seen[0].extensions["timeout"] == _all(3.0)

    def test_shorter_explicit_timeout_kept(self, clock):
        seen = []
        client = TimeboxClient(_client(seen))
        with timebox.scope(5):
            client.post("http://example.test/users", json={"name": "Bob"}, timeout=1.0)
        assert seen[0].extensions["timeout"] == _all(1.0)

    def test_unbounded_client_gets_remaining_time(self, clock):
        seen = []
        client = TimeboxClient(_client(seen, timeout=None))
        with timebox.scope(4):
            client.get("http://example.test/users")
        assert seen[0].extensions["timeout"] == _all(4.0)

    def test_not_sent_when_exceeded(self, clock):
        seen = []
        client = TimeboxClient(_client(seen))
        with timebox.scope(3):
            clock.advance(5)
            with pytest.raises(BudgetExceeded) as exc_info:
                client.get("http://example.test/users")
        assert exc_info.value.checkpoint_name == "http"
        assert seen == []

    def test_excluded_checkpoint_goes_through(self, clock):
        seen = []
        client = TimeboxClient(_client(seen))
        with timebox.scope(3, exclude="http"):
            clock.advance(5)
            client.get("http://example.test/users")
        assert seen[0].extensions["timeout"] == _all(30.0)

    def test_explicit_stack(self, clock):
        seen = []
        stack = BudgetStack("http_stack")
        client = TimeboxClient(_client(seen), stack=stack)
        with timebox.scope(1):
            with stack.scope(2):
                client.get("http://example.test/users")
        assert seen[0].extensions["timeout"] == _all(2.0)

    def test_builds_its_own_client(self):
        client = TimeboxClient(timeout=12.0)
        assert client.client.timeout.read == 12.0
        client.close()

    def test_capped_timeout_never_negative(self, clock):
        budget = timebox.Budget(1)
        clock.advance(2)
        assert capped_timeout(10.0, budget).as_dict() == _all(0.0)


class TestAsyncHttpClient:
    @pytest.mark.asyncio
    async def test_timeouts_capped_at_remaining_time(self, clock):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        inner = httpx.AsyncClient(transport=httpx.MockTransport(handler), timeout=30.0)
        async with AsyncTimeboxClient(inner) as client:
            with timebox.scope(5):
                clock.advance(1)
                await client.get("http://example.test/users")
        assert seen[0].extensions["timeout"] == _all(4.0)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["head", "options", "patch"])
    async def test_shortcuts_match_sync_client(self, clock, method):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        inner = httpx.AsyncClient(transport=httpx.MockTransport(handler), timeout=30.0)
        async with AsyncTimeboxClient(inner) as client:
            with timebox.scope(5):
                clock.advance(3)
                await getattr(client, method)("http://example.test/users")
        assert seen[0].method == method.upper()
        assert seen[0].extensions["timeout"] == _all(2.0)

    @pytest.mark.asyncio
    async def test_not_sent_when_exceeded(self, clock):
        handler = MagicMock(return_value=httpx.Response(204))
        inner = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        async with AsyncTimeboxClient(inner) as client:
            with timebox.scope(1):
                clock.advance(2)
                with pytest.raises(BudgetExceeded):
                    await client.get("http://example.test/users")
        handler.assert_not_called()


# ---------------------------------------------------------------------------
# DB-API
# ---------------------------------------------------------------------------

class TestDbCursor:
    def test_sets_max_execution_time_to_remaining_ms(self, clock):
        inner = MagicMock()
        cursor = TimeboxCursor(inner)
        with timebox.scope(3):
            clock.advance(1)
            cursor.execute("SELECT 1 FROM dual")
        inner.execute.assert_called_once_with(
            "SELECT /*+ MAX_EXECUTION_TIME(2000) */ 1 FROM dual"
        )

    def test_rounds_remaining_ms_up(self, clock):
        inner = MagicMock()
        with timebox.scope(0.0004):
            TimeboxCursor(inner).execute("SELECT 1 FROM dual")
        inner.execute.assert_called_once_with(
            "SELECT /*+ MAX_EXECUTION_TIME(1) */ 1 FROM dual"
        )

    def test_never_sends_zero_limit(self, clock):
        inner = MagicMock()
        with timebox.scope(0):
            TimeboxCursor(inner).execute("SELECT 1 FROM dual")
        inner.execute.assert_called_once_with(
            "SELECT /*+ MAX_EXECUTION_TIME(1) */ 1 FROM dual"
        )

    def test_passes_parameters(self, clock):
        inner = MagicMock()
        with timebox.scope(3):
            TimeboxCursor(inner).execute("SELECT * FROM users WHERE id = %s", (7,))
        inner.execute.assert_called_once_with(
            "SELECT /*+ MAX_EXECUTION_TIME(3000) */ * FROM users WHERE id = %s", (7,)
        )

    def test_raises_if_expired(self, clock):
        inner = MagicMock()
        with timebox.scope(3):
            clock.advance(5)
            with pytest.raises(BudgetExceeded) as exc_info:
                TimeboxCursor(inner).execute("SELECT 1 FROM dual")
        assert exc_info.value.checkpoint_name == "db"
        inner.execute.assert_not_called()

    def test_does_nothing_without_budget(self):
        inner = MagicMock()
        TimeboxCursor(inner).execute("SELECT 1 FROM dual")
        inner.execute.assert_called_once_with("SELECT 1 FROM dual")

    def test_does_nothing_if_excluded(self, clock):
        inner = MagicMock()
        with timebox.scope(3, exclude="db"):
            clock.advance(5)
            TimeboxCursor(inner).execute("SELECT 1 FROM dual")
        inner.execute.assert_called_once_with("SELECT 1 FROM dual")

    def test_does_nothing_for_insert_with_time_remaining(self, clock):
        inner = MagicMock()
        with timebox.scope(3):
            clock.advance(1)
            TimeboxCursor(inner).execute("INSERT users(first_name) VALUES('Bob')")
        inner.execute.assert_called_once_with("INSERT users(first_name) VALUES('Bob')")

    def test_raises_for_insert_when_expired(self, clock):
        inner = MagicMock()
        with timebox.scope(3):
            clock.advance(5)
            with pytest.raises(BudgetExceeded):
                TimeboxCursor(inner).execute("INSERT users(first_name) VALUES('Bob')")
        inner.execute.assert_not_called()

    def test_executemany(self, clock):
        inner = MagicMock()
        rows = [("a",), ("b",)]
        with timebox.scope(3):
            TimeboxCursor(inner).executemany("INSERT INTO t VALUES (?)", rows)
        inner.executemany.assert_called_once_with("INSERT INTO t VALUES (?)", rows)

    def test_custom_checkpoint_name(self, clock):
        inner = MagicMock()
        with timebox.scope(3, only="mysql"):
            clock.advance(5)
            with pytest.raises(BudgetExceeded):
                TimeboxCursor(inner, checkpoint_name="mysql").execute("SELECT 1")


class TestDbConnection:
    def test_queries_sqlite_with_hint(self, clock):
        conn = TimeboxConnection(sqlite3.connect(":memory:"))
        cursor = conn.cursor()
        assert isinstance(cursor, TimeboxCursor)
        cursor.execute("CREATE TABLE users (name TEXT)")
        cursor.execute("INSERT INTO users (name) VALUES (?)", ("Bob",))
        conn.commit()
        with timebox.scope(3):
            cursor.execute("SELECT name FROM users")
            assert cursor.fetchall() == [("Bob",)]
        conn.close()

    def test_cursor_iterates_rows(self, clock):
        conn = TimeboxConnection(sqlite3.connect(":memory:"))
        cursor = conn.cursor()
        with timebox.scope(3):
            cursor.execute("SELECT 1 UNION ALL SELECT 2")
            assert [row[0] for row in cursor] == [1, 2]
        conn.close()

    def test_context_manager_delegates(self):
        inner = MagicMock()
        with TimeboxConnection(inner) as conn:
            assert isinstance(conn, TimeboxConnection)
        inner.__enter__.assert_called_once()
        inner.__exit__.assert_called_once_with(None, None, None)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

class TestTimeboxedHandler:
    def test_runs_handler_inside_budget(self, clock):
        @timeboxed(3)
        def show():
            return timebox.current()

        budget = show()
        assert budget.allowed_seconds == 3.0
        assert timebox.current() is None

    def test_preserves_metadata(self):
        @timeboxed(3)
        def show():
            """Show a user."""

        assert show.__name__ == "show"
        assert show.__doc__ == "Show a user."

    def test_passes_filters(self, clock):
        @timeboxed(3, exclude="db")
        def show():
            return timebox.current().exclude

        assert show() == frozenset({"db"})

    def test_last_applied_wins(self, clock):
        @timeboxed(5)
        @timeboxed(3)
        def show():
            return timebox.current().allowed_seconds

        assert show() == 5.0

    def test_other_decorators_between_layers_still_run(self, clock):
        calls = []

        def audited(fn):
            @functools.wraps(fn)
            def wrapper(*args, **kwargs):
                calls.append("audited")
                return fn(*args, **kwargs)

            return wrapper

        @timeboxed(5)
        @audited
        @timeboxed(3)
        def show():
            return timebox.current().allowed_seconds

        assert show() == 3.0
        assert calls == ["audited"]
        assert timebox.current() is None

    def test_conditions_pick_the_first_matching_rule(self, clock):
        @timeboxed(7, when=lambda user: user == "staff")
        @timeboxed(3)
        def show(user):
            return timebox.current().allowed_seconds

        assert show("staff") == 7.0
        assert show("guest") == 3.0

    def test_no_budget_when_no_rule_matches(self, clock):
        @timeboxed(7, when=lambda user: False)
        def show(user):
            return timebox.current()

        assert show("guest") is None

    def test_nests_under_outer_budget(self, clock):
        @timeboxed(10)
        def show():
            return timebox.current().allowed_seconds

        with timebox.scope(2):
            assert show() == 2.0

    def test_restores_stack_after_error(self, clock):
        @timeboxed(1)
        def show():
            clock.advance(2)
            timebox.checkpoint()

        with pytest.raises(BudgetExceeded):
            show()
        assert timebox.current() is None

    @pytest.mark.asyncio
    async def test_async_handler(self, clock):
        @timeboxed(7, when=lambda user: user == "staff")
        @timeboxed(3)
        async def show(user):
            return timebox.current().allowed_seconds

        assert await show("staff") == 7.0
        assert await show("guest") == 3.0
        assert timebox.current() is None


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------

class TestJobMiddleware:
    def test_wraps_job_with_declared_seconds(self, clock):
        middleware = JobMiddleware()
        seconds = middleware({"class": "SyncUsers", "timebox": 6.0},
                             lambda: timebox.current().allowed_seconds)
        assert seconds == 6.0
        assert timebox.current() is None

    def test_no_budget_without_metadata(self):
        assert JobMiddleware()({"class": "SyncUsers"}, timebox.current) is None

    def test_none_metadata_means_no_budget(self):
        assert JobMiddleware()({"timebox": None}, timebox.current) is None

    def test_custom_key(self, clock):
        middleware = JobMiddleware(key="cutoff")
        assert middleware({"cutoff": "2.5"}, lambda: timebox.current().allowed_seconds) == 2.5

    def test_job_failure_unwinds_stack(self, clock):
        def perform():
            clock.advance(10)
            timebox.checkpoint()

        with pytest.raises(BudgetExceeded):
            JobMiddleware()({"timebox": 1}, perform)
        assert timebox.current() is None
