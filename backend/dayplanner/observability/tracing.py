"""Tracing utilities wrapping Opik."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional
from uuid import UUID

from dayplanner.observability import client as client_module

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from opik.api_objects.trace.trace_client import Trace
else:  # pragma: no cover - typing helper
    Trace = object  # type: ignore[assignment]

logger = logging.getLogger(__name__)


def clean_metadata(metadata: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop empty values and stringify ids/dates so payloads stay JSON friendly."""
    cleaned: Dict[str, Any] = {}
    for key, value in (metadata or {}).items():
        if value is None or value == "" or value == []:
            continue
        if isinstance(value, UUID):
            value = str(value)
        elif isinstance(value, (date, datetime)):
            value = value.isoformat()
        cleaned[key] = value
    return cleaned


@contextmanager
def trace(
    name: str,
    metadata: Optional[Dict[str, Any]] = None,
    user_id: Optional[Any] = None,
    request_id: Optional[str] = None,
) -> Iterator[Optional["Trace"]]:
    """
    Create an Opik trace context manager.

    When Opik is disabled or unavailable the context is a no-op and yields None.
    Exceptions raised inside the block are attached to the trace and re-raised.
    """
    client = client_module.get_opik_client()
    opik_trace: Optional["Trace"] = None

    if client:
        trace_metadata = clean_metadata(metadata)
        if user_id:
            trace_metadata.setdefault("user_id", str(user_id))
        if request_id:
            trace_metadata.setdefault("request_id", request_id)
        try:
            opik_trace = client.trace(name=name, metadata=trace_metadata or None)
        except Exception as exc:  # pragma: no cover - third-party failure
            logger.debug("Unable to start Opik trace %s: %s", name, exc)
            opik_trace = None

    try:
        yield opik_trace
    except Exception as exc:
        if opik_trace:
            try:
                opik_trace.update(error_info={"message": str(exc)})
            except Exception:  # pragma: no cover
                logger.debug("Failed to attach error info to Opik trace %s", name, exc_info=True)
        raise
    finally:
        if opik_trace:
            try:
                opik_trace.end()
            except Exception:  # pragma: no cover
                logger.debug("Failed to close Opik trace %s cleanly", name, exc_info=True)
