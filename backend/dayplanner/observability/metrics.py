"""Lightweight metrics helpers."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from dayplanner.observability import client as client_module
from dayplanner.observability.tracing import clean_metadata

logger = logging.getLogger(__name__)


def log_metric(name: str, value: float | int, metadata: Optional[Dict[str, Any]] = None) -> None:
    """Record a metric as a short-lived Opik trace when Opik is enabled."""
    client = client_module.get_opik_client()
    if not client:
        return

    payload: Dict[str, Any] = {"value": value}
    payload.update(clean_metadata(metadata))

    try:
        metric_trace = client.trace(name=f"metric:{name}", metadata=payload)
        metric_trace.end()
    except Exception as exc:  # pragma: no cover - third-party failure
        logger.debug("Unable to record metric %s: %s", name, exc)
