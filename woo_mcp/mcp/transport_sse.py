"""MCP sessions and the SSE (Server-Sent Events) compatibility stream."""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Callable

from sse_starlette.sse import EventSourceResponse

from woo_mcp.utils.logging import get_logger

# Idle sessions are dropped after 30 minutes
DEFAULT_SESSION_TIMEOUT = 30 * 60
CLEANUP_INTERVAL = 60


@dataclass
class Session:
    """An MCP session created by a successful initialize."""

    session_id: str
    protocol_version: str | None
    last_activity: float
    log_level: str = "info"
    subscriptions: set[str] = field(default_factory=set)
    closed: bool = False


class SessionManager:
    """
    Tracks sessions by the ID sent in the Mcp-Session-Id header.

    Lookups refresh a session's idle timer; a session idle for longer than
    `timeout` seconds is dropped the next time it is looked up or swept.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_SESSION_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
        logger: Any = None,
    ):
        self.timeout = timeout
        self.clock = clock
        self.logger = logger or get_logger("sessions")
        self._sessions: dict[str, Session] = {}
        self._cleanup_task: asyncio.Task | None = None

    def create_session(self, protocol_version: str | None = None) -> Session:
        session = Session(
            session_id=str(uuid.uuid4()),
            protocol_version=protocol_version,
            last_activity=self.clock(),
        )
        self._sessions[session.session_id] = session
        self.logger.info("Session created", session_id=session.session_id, protocol_version=protocol_version)
        return session

    def get_session(self, session_id: str | None) -> Session | None:
        """Return a live session and mark it active, or None."""
        if not session_id:
            return None
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if self._expired(session):
            self.remove_session(session_id)
            return None
        session.last_activity = self.clock()
        return session

    def remove_session(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.closed = True
            self.logger.info("Session closed", session_id=session_id)

    def cleanup_expired(self) -> int:
        """Drop idle sessions, returning how many were removed."""
        expired = [sid for sid, session in self._sessions.items() if self._expired(session)]
        for sid in expired:
            self.remove_session(sid)
        if expired:
            self.logger.info("Expired sessions removed", count=len(expired))
        return len(expired)

    def _expired(self, session: Session) -> bool:
        return self.clock() - session.last_activity > self.timeout

    async def start_cleanup_task(self, interval: float = CLEANUP_INTERVAL) -> None:
        async def sweep() -> None:
            while True:
                await asyncio.sleep(interval)
                self.cleanup_expired()

        self._cleanup_task = asyncio.create_task(sweep())

    def stop_cleanup_task(self) -> None:
        if self._cleanup_task:
            self._cleanup_task.cancel()
            self._cleanup_task = None

    @property
    def session_count(self) -> int:
        return len(self._sessions)


async def sse_events(
    endpoint: str,
    heartbeat_interval: float,
    max_duration: float,
) -> AsyncGenerator[dict[str, Any], None]:
    """
    Events for an SSE compatibility stream.

    Announces the endpoint clients should POST to, then sends ping events
    until max_duration has passed.
    """
    yield {"event": "endpoint", "data": endpoint}

    deadline = time.monotonic() + max_duration
    try:
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            await asyncio.sleep(min(heartbeat_interval, remaining))
            if time.monotonic() >= deadline:
                break
            yield {"event": "ping", "data": str(int(time.time()))}
    except asyncio.CancelledError:
        get_logger("sse").info("SSE stream cancelled by client", endpoint=endpoint)
        raise


def create_sse_response(
    endpoint: str,
    heartbeat_interval: float = 15.0,
    max_duration: float = 300.0,
    headers: dict[str, str] | None = None,
) -> EventSourceResponse:
    """Create an SSE response for a GET on the MCP endpoint."""
    return EventSourceResponse(
        sse_events(endpoint, heartbeat_interval, max_duration),
        headers=headers,
    )
