"""Lightweight metrics instrumentation emitted through logging."""

from __future__ import annotations

import logging
from typing import Any


class MetricsRecorder:
    """Emit structured counter and timing metrics as log lines."""

    def __init__(
        self,
        *,
        enabled: bool = True,
        namespace: str = "serpscout",
        logger: logging.Logger | None = None,
    ) -> None:
        self._enabled = enabled
        self._namespace = namespace.strip() or "serpscout"
        self._logger = logger or logging.getLogger("serpscout.metrics")

    @property
    def enabled(self) -> bool:
        return self._enabled

    def increment(self, metric: str, *, value: int = 1, **tags: Any) -> None:
        """Increment a counter metric."""

        if not self._enabled:
            return
        clean_tags = {key: val for key, val in tags.items() if val is not None}
        self._emit(metric, fields={"value": int(value)}, tags=clean_tags)

    def record_timing(self, metric: str, duration_seconds: float, **tags: Any) -> None:
        """Emit a timing metric, recording milliseconds to logs."""

        if not self._enabled:
            return
        duration_ms = max(duration_seconds * 1000.0, 0.0)
        clean_tags = {key: val for key, val in tags.items() if val is not None}
        self._emit(metric, fields={"duration_ms": round(duration_ms, 4)}, tags=clean_tags)

    def _emit(self, metric: str, *, fields: dict[str, Any], tags: dict[str, Any]) -> None:
        tag_segments = [f"{key}={self._stringify(value)}" for key, value in sorted(tags.items())]
        field_segments = [f"{key}={self._stringify(value)}" for key, value in sorted(fields.items())]
        segment_parts = field_segments + tag_segments
        message = f"{self._namespace}.{metric}"
        if segment_parts:
            message = f"{message} {' '.join(segment_parts)}"
        self._logger.info(message)

    @staticmethod
    def _stringify(value: Any) -> str:
        if isinstance(value, float):
            return f"{value:.4f}" if not value.is_integer() else f"{int(value)}"
        return str(value)
