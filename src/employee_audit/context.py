"""Request-scoped correlation context.

The context lives in a ``ContextVar``. asyncio copies the current context
into every task it creates, so continuations of a request (including
detached audit writes spawned from it) see the same values after any
suspension point without the fields being passed explicitly.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable

ANONYMOUS_USER = "anonymous"
SYSTEM_USER = "system"


@dataclass(frozen=True)
class RequestContext:
    """Immutable correlation fields for one inbound request."""

    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    session_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    user_id: str = ANONYMOUS_USER
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_log_fields(self) -> dict[str, str | None]:
        return {
            "requestId": self.request_id,
            "sessionId": self.session_id,
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "userId": self.user_id,
        }

    def with_user(self, user_id: str) -> "RequestContext":
        """Return new context for a different user."""
        return replace(self, user_id=user_id)


_request_context: ContextVar[RequestContext | None] = ContextVar(
    "request_context",
    default=None,
)


def set_request_context(ctx: RequestContext) -> Token[RequestContext | None]:
    """Set context and return reset token."""
    return _request_context.set(ctx)


def reset_request_context(token: Token[RequestContext | None]) -> None:
    """Reset context using token from set_request_context()."""
    _request_context.reset(token)


def get_request_context() -> RequestContext:
    """Get context or raise RuntimeError."""
    ctx = _request_context.get()
    if ctx is None:
        raise RuntimeError("No request context set")
    return ctx


def get_request_context_optional() -> RequestContext | None:
    """Get context or None (for code that also runs outside requests)."""
    return _request_context.get()


def update_request_context(
    updater: Callable[[RequestContext], RequestContext],
) -> Token[RequestContext | None]:
    """Update context with a function and return reset token."""
    current = get_request_context()
    return _request_context.set(updater(current))


@contextmanager
def request_scope(ctx: RequestContext) -> Iterator[RequestContext]:
    """Establish ``ctx`` for the enclosed block and always restore the previous value."""
    token = set_request_context(ctx)
    try:
        yield ctx
    finally:
        reset_request_context(token)


def system_context(job_name: str) -> RequestContext:
    """Context for work not triggered by a request, such as scheduled jobs."""
    return RequestContext(
        request_id=f"{job_name}-{uuid.uuid4()}",
        session_id=None,
        ip_address=None,
        user_agent=None,
        user_id=SYSTEM_USER,
    )
