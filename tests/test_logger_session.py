"""
Tests for trip_logger.session.

Remote sync goes through httpx.MockTransport; sleeps are captured instead
of slept.
"""

import json
from unittest.mock import patch

import httpx
import pytest

from trip_logger.session import (
    LoggerSessionState,
    RetryPolicy,
    SessionOrderError,
    SessionStore,
    build_store,
    sync_with_retry,
)


# ---------------------------------------------------------------------------
# LoggerSessionState
# ---------------------------------------------------------------------------

class TestLoggerSessionState:
    def test_arrived_then_boarded(self):
        state = LoggerSessionState().record("arrived", "08:00:00", route_id="R1")
        state = state.record("boarded", "08:04:00")
        assert state.route_id == "R1"
        assert state.timestamps == {"arrived": "08:00:00", "boarded": "08:04:00"}

    def test_record_returns_new_state(self):
        original = LoggerSessionState()
        original.record("arrived", "08:00:00")
        assert original.timestamps == {}

    def test_must_start_with_arrived(self):
        with pytest.raises(SessionOrderError):
            LoggerSessionState().record("boarded", "08:04:00")

    def test_unknown_kind(self):
        with pytest.raises(SessionOrderError):
            LoggerSessionState().record("teleported", "08:04:00")

    def test_next_stop_requires_dropped(self):
        state = LoggerSessionState().record("arrived", "08:00:00")
        with pytest.raises(SessionOrderError):
            state.record("next_stop", "08:30:00")

    def test_start_walk_collapses_first_three(self):
        state = LoggerSessionState().start_walk("07:30:00", route_id="W")
        assert state.timestamps == {
            "arrived": "07:30:00", "boarded": "07:30:00", "departed": "07:30:00",
        }
        assert not state.is_complete

    def test_cycles_never_negative(self):
        state = LoggerSessionState().adjust_cycles(2).adjust_cycles(-5)
        assert state.missed_cycles == 0

    def test_to_trip_log(self):
        state = (
            LoggerSessionState()
            .start_walk("07:30:00", route_id="W")
            .record("dropped", "07:42:00")
            .adjust_cycles(1)
        )
        payload = state.to_trip_log("2024-01-08")
        assert payload["route_id"] == "W"
        assert payload["date"] == "2024-01-08"
        assert payload["timestamps"]["dropped"] == "07:42:00"
        assert payload["timestamps"]["next_stop"] is None
        assert payload["missed_cycles"] == 1

    def test_to_trip_log_requires_dropped(self):
        with pytest.raises(SessionOrderError):
            LoggerSessionState().record("arrived", "08:00:00").to_trip_log("2024-01-08")

    def test_from_dict_tolerates_missing_fields(self):
        state = LoggerSessionState.from_dict({"route_id": "R1"})
        assert state.timestamps == {}
        assert state.missed_cycles == 0
        assert state.status == "in_progress"


# ---------------------------------------------------------------------------
# RetryPolicy / sync_with_retry
# ---------------------------------------------------------------------------

class TestRetry:
    def test_delays_grow_exponentially(self):
        assert RetryPolicy(max_attempts=4, base_delay=0.5, multiplier=2.0).delays() == [0.5, 1.0, 2.0]

    def test_single_attempt_has_no_delays(self):
        assert RetryPolicy(max_attempts=1).delays() == []

    def test_succeeds_after_transient_failures(self):
        calls = []
        slept = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise httpx.ConnectError("down")
            return "ok"

        result = sync_with_retry(flaky, RetryPolicy(3, 1.0, 2.0), sleep=slept.append)
        assert result == "ok"
        assert slept == [1.0, 2.0]

    def test_reraises_after_last_attempt(self):
        slept = []

        def always_down():
            raise httpx.ConnectError("down")

        with pytest.raises(httpx.HTTPError):
            sync_with_retry(always_down, RetryPolicy(3, 1.0, 2.0), sleep=slept.append)
        assert slept == [1.0, 2.0]

    def test_non_http_errors_are_not_retried(self):
        slept = []

        def broken():
            raise KeyError("bug")

        with pytest.raises(KeyError):
            sync_with_retry(broken, RetryPolicy(3, 1.0, 2.0), sleep=slept.append)
        assert slept == []


# ---------------------------------------------------------------------------
# SessionStore
# ---------------------------------------------------------------------------

def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler), base_url="http://commute.test")


class TestSessionStoreLocal:
    def test_save_load_clear(self, tmp_path):
        store = SessionStore(tmp_path / "session.json")
        state = LoggerSessionState().record("arrived", "08:00:00", route_id="R1")

        assert store.save(state) is False  # no remote configured
        assert store.load() == state

        store.clear()
        assert store.load() is None

    def test_load_missing_file(self, tmp_path):
        assert SessionStore(tmp_path / "none.json").load() is None

    def test_load_corrupt_file(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json")
        assert SessionStore(path).load() is None

    def test_remote_needs_user_id(self, tmp_path):
        store = SessionStore(tmp_path / "s.json", client=_client(lambda r: httpx.Response(200)))
        assert store.remote_enabled is False


class TestSessionStoreRemote:
    def test_push_sends_identity_and_body(self, tmp_path):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201, json={"id": 1})

        store = SessionStore(tmp_path / "s.json", client=_client(handler), user_id="u1")
        state = LoggerSessionState().record("arrived", "08:00:00", route_id="R1")

        assert store.save(state) is True
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/logger-session"
        assert request.url.params["user_id"] == "u1"
        assert request.headers["X-User-Id"] == "u1"
        assert json.loads(request.content) == {
            "route_id": "R1", "timestamps": {"arrived": "08:00:00"}, "missed_cycles": 0,
        }

    def test_remote_failure_keeps_local_copy(self, tmp_path):
        slept = []
        store = SessionStore(
            tmp_path / "s.json",
            client=_client(lambda r: httpx.Response(503)),
            user_id="u1",
            policy=RetryPolicy(3, 1.0, 2.0),
            sleep=slept.append,
        )
        state = LoggerSessionState().record("arrived", "08:00:00")

        assert store.save(state) is False
        assert store.load() == state
        assert slept == [1.0, 2.0]

    def test_clear_deletes_remote(self, tmp_path):
        methods = []

        def handler(request):
            methods.append(request.method)
            return httpx.Response(200, json={"success": True})

        store = SessionStore(tmp_path / "s.json", client=_client(handler), user_id="u1")
        assert store.clear() is True
        assert methods == ["DELETE"]

    def test_restore_falls_back_to_remote(self, tmp_path):
        body = {"route_id": "R9", "timestamps": {"arrived": "06:00:00"}, "missed_cycles": 2,
                "status": "in_progress"}
        store = SessionStore(
            tmp_path / "s.json",
            client=_client(lambda r: httpx.Response(200, json=body)),
            user_id="u1",
        )
        state = store.restore()
        assert state.route_id == "R9"
        assert state.missed_cycles == 2

    def test_pull_none_when_remote_empty(self, tmp_path):
        store = SessionStore(
            tmp_path / "s.json",
            client=_client(lambda r: httpx.Response(200, json=None)),
            user_id="u1",
        )
        assert store.pull() is None

    def test_restore_survives_unreachable_remote(self, tmp_path):
        store = SessionStore(
            tmp_path / "s.json",
            client=_client(lambda r: httpx.Response(500)),
            user_id="u1",
            policy=RetryPolicy(2, 0.0, 2.0),
            sleep=lambda _: None,
        )
        assert store.restore() is None


class TestBuildStore:
    def test_local_only_without_sync_url(self):
        with patch("trip_logger.session.SYNC_BASE_URL", ""):
            store = build_store("u1")
        assert store.client is None
        assert store.remote_enabled is False

    def test_remote_when_sync_url_set(self):
        with patch("trip_logger.session.SYNC_BASE_URL", "http://commute.test"):
            store = build_store("u1")
        assert store.remote_enabled is True
        assert store.client.base_url.host == "commute.test"
        store.client.close()
