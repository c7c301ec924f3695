"""
Trip logger session: the in-progress trip a commuter is stamping.

LoggerSessionState is an immutable value object; every stamp returns a new
state.  SessionStore owns persistence: a local JSON file that is always
written first, plus an optional remote copy on the service's
/logger-session endpoint, pushed through sync_with_retry().

Stamp order:
  arrived → boarded → departed → dropped → next_stop
"arrived" must come first; "next_stop" only after "dropped".  A walk is
started with start_walk(), which stamps arrived/boarded/departed at once.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, TypeVar

import httpx

from config import (
    LOGGER_SESSION_PATH,
    SYNC_BACKOFF_MULTIPLIER,
    SYNC_BASE_DELAY_SECONDS,
    SYNC_BASE_URL,
    SYNC_MAX_ATTEMPTS,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

TIMESTAMP_KINDS = ("arrived", "boarded", "departed", "dropped", "next_stop")
IN_PROGRESS = "in_progress"


class SessionOrderError(ValueError):
    """A stamp was recorded out of order, or with an unknown kind."""


@dataclass(frozen=True)
class LoggerSessionState:
    route_id: str | None = None
    timestamps: dict[str, str] = field(default_factory=dict)
    missed_cycles: int = 0
    status: str = IN_PROGRESS

    def record(self, kind: str, at: str, route_id: str | None = None) -> LoggerSessionState:
        if kind not in TIMESTAMP_KINDS:
            raise SessionOrderError(
                f"timestamp_type must be one of: {', '.join(TIMESTAMP_KINDS)}"
            )
        if kind != "arrived" and "arrived" not in self.timestamps:
            raise SessionOrderError("No active session. Start with arrived timestamp.")
        if kind == "next_stop" and "dropped" not in self.timestamps:
            raise SessionOrderError("next_stop can only be stamped after dropped.")
        return replace(
            self,
            route_id=route_id or self.route_id,
            timestamps={**self.timestamps, kind: at},
        )

    def start_walk(self, at: str, route_id: str | None = None) -> LoggerSessionState:
        return replace(
            self,
            route_id=route_id or self.route_id,
            timestamps={**self.timestamps, "arrived": at, "boarded": at, "departed": at},
        )

    def adjust_cycles(self, delta: int) -> LoggerSessionState:
        return replace(self, missed_cycles=max(0, self.missed_cycles + delta))

    @property
    def is_complete(self) -> bool:
        return "dropped" in self.timestamps

    def to_trip_log(self, log_date: str) -> dict[str, Any]:
        """Payload for POST /log once the trip is complete."""
        if not self.is_complete:
            raise SessionOrderError("Trip is not complete until dropped is stamped.")
        return {
            "route_id": self.route_id,
            "date": log_date,
            "timestamps": {kind: self.timestamps.get(kind) for kind in TIMESTAMP_KINDS},
            "missed_cycles": self.missed_cycles,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "route_id": self.route_id,
            "timestamps": dict(self.timestamps),
            "missed_cycles": self.missed_cycles,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoggerSessionState:
        return cls(
            route_id=data.get("route_id"),
            timestamps=dict(data.get("timestamps") or {}),
            missed_cycles=int(data.get("missed_cycles") or 0),
            status=data.get("status") or IN_PROGRESS,
        )


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = SYNC_MAX_ATTEMPTS
    base_delay: float = SYNC_BASE_DELAY_SECONDS
    multiplier: float = SYNC_BACKOFF_MULTIPLIER

    def delays(self) -> list[float]:
        """Sleep before each retry: base, base·m, base·m², ..."""
        return [self.base_delay * self.multiplier ** i for i in range(max(0, self.max_attempts - 1))]


def sync_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run operation, retrying httpx failures with exponential backoff.

    Raises:
        httpx.HTTPError: The last failure, once attempts are exhausted.
    """
    delays = policy.delays()
    for attempt in range(1, max(1, policy.max_attempts) + 1):
        try:
            return operation()
        except httpx.HTTPError as exc:
            if attempt > len(delays):
                raise
            delay = delays[attempt - 1]
            logger.warning(
                "Remote sync attempt %d/%d failed (%s); retrying in %.1fs.",
                attempt, policy.max_attempts, exc, delay,
            )
            sleep(delay)


class SessionStore:
    """
    Local-first persistence for the logger session.

    Args:
        path:    Local JSON file.
        client:  httpx.Client with base_url pointing at the service, or None
                 for local-only persistence.
        user_id: Identity sent with every remote call (required for remote).
        policy:  Retry policy for remote calls.
        sleep:   Injected for tests.
    """

    def __init__(
        self,
        path: Path = LOGGER_SESSION_PATH,
        client: httpx.Client | None = None,
        user_id: str | None = None,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.path = Path(path)
        self.client = client
        self.user_id = user_id
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    @property
    def remote_enabled(self) -> bool:
        return self.client is not None and bool(self.user_id)

    # --- local -------------------------------------------------------------

    def load(self) -> LoggerSessionState | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text())
        except json.JSONDecodeError as exc:
            logger.warning("Discarding unreadable logger session %s: %s", self.path, exc)
            return None
        return LoggerSessionState.from_dict(data)

    def save(self, state: LoggerSessionState) -> bool:
        """Write locally, then push remotely.  Returns True if the remote copy is current."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(state.to_dict()))
        return self.push(state)

    def clear(self) -> bool:
        self.path.unlink(missing_ok=True)
        if not self.remote_enabled:
            return False
        return self._remote("clear", lambda: self._request("DELETE", "/logger-session"))

    # --- remote ------------------------------------------------------------

    def push(self, state: LoggerSessionState) -> bool:
        if not self.remote_enabled:
            return False
        body = {
            "route_id": state.route_id,
            "timestamps": state.timestamps,
            "missed_cycles": state.missed_cycles,
        }
        return self._remote("push", lambda: self._request("POST", "/logger-session", json=body))

    def pull(self) -> LoggerSessionState | None:
        """Fetch the remote in-progress session, or None if there is none."""
        if not self.remote_enabled:
            return None
        response = sync_with_retry(
            lambda: self._request("GET", "/logger-session"), self.policy, self._sleep
        )
        data = response.json()
        return LoggerSessionState.from_dict(data) if data else None

    def restore(self) -> LoggerSessionState | None:
        """Local copy if present, else whatever the service still holds."""
        state = self.load()
        if state is not None:
            return state
        try:
            return self.pull()
        except httpx.HTTPError as exc:
            logger.error("Could not restore logger session from remote: %s", exc)
            return None

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        response = self.client.request(
            method,
            url,
            params={"user_id": self.user_id},
            headers={"X-User-Id": self.user_id},
            **kwargs,
        )
        response.raise_for_status()
        return response

    def _remote(self, action: str, operation: Callable[[], httpx.Response]) -> bool:
        try:
            sync_with_retry(operation, self.policy, self._sleep)
        except httpx.HTTPError as exc:
            # Local copy stays authoritative; the next save pushes again.
            logger.error("Logger session %s failed after %d attempts: %s",
                         action, self.policy.max_attempts, exc)
            return False
        return True


def build_store(user_id: str | None = None) -> SessionStore:
    """SessionStore wired from config; remote only when SYNC_BASE_URL is set."""
    client = httpx.Client(base_url=SYNC_BASE_URL, timeout=15) if SYNC_BASE_URL else None
    return SessionStore(LOGGER_SESSION_PATH, client=client, user_id=user_id)
