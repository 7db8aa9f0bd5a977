"""Audit trail for gatekeeper and tool decisions.

Events are append-only structured log lines on the ``audit`` logger. The
system never reads them back.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from app.core.logging import get_logger

_audit_logger = get_logger("audit")
_fallback_logger = logging.getLogger(__name__)


def audit_event(event_name: str, request_id: str | None, **context: Any) -> None:
    """
    Record one audit event.

    Never raises: a failing log sink must not block the request path.

    Args:
        event_name: Dotted event name, e.g. ``mcp.request.accepted``
        request_id: Request correlation identifier
        **context: Outcome and the data needed to reconstruct it
    """
    try:
        _audit_logger.info(
            event_name,
            audit=True,
            ts=datetime.now(timezone.utc).isoformat(),
            request_id=request_id,
            **context,
        )
    except Exception as exc:
        # stdlib logging reports its own handler errors instead of raising
        _fallback_logger.warning("Audit log write failed for %s: %s", event_name, exc)
