"""Tracing configuration for the northbound API."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Callable

_DEFAULT_EXPORTER = "stdout"
_DEFAULT_SERVICE_NAME = "nbi-grpc"
_DEFAULT_SHUTDOWN_TIMEOUT = 5.0

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TracingConfig:
    """How tracing is set up; ``endpoint`` is used by the OTLP exporter."""

    enabled: bool = False
    service_name: str = _DEFAULT_SERVICE_NAME
    exporter: str = _DEFAULT_EXPORTER  # stdout | otlp
    endpoint: str = ""
    sample_ratio: float = 1.0


def _parse_ratio(raw: str) -> float | None:
    if raw != raw.strip() or "_" in raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    if 0.0 <= value <= 1.0:
        return value
    return None


def tracing_config_from_env(environ: Mapping[str, str] | None = None) -> TracingConfig:
    """Read tracing settings from the environment, with defaults for unset values."""
    env = os.environ if environ is None else environ

    enabled = env.get("NBI_TRACING_ENABLED", "").casefold() == "true"
    exporter = env.get("NBI_TRACING_EXPORTER", "").lower() or _DEFAULT_EXPORTER
    service = env.get("NBI_TRACING_SERVICE_NAME", "") or _DEFAULT_SERVICE_NAME

    ratio = 1.0
    raw_ratio = env.get("NBI_TRACING_SAMPLE_RATIO", "")
    if raw_ratio:
        parsed = _parse_ratio(raw_ratio)
        if parsed is not None:
            ratio = parsed

    return TracingConfig(
        enabled=enabled,
        service_name=service,
        exporter=exporter,
        endpoint=env.get("NBI_OTLP_ENDPOINT", ""),
        sample_ratio=ratio,
    )


def shutdown_with_timeout(
    shutdown: Callable[[float], object] | None,
    logger: logging.Logger | None = None,
    timeout: float = _DEFAULT_SHUTDOWN_TIMEOUT,
) -> None:
    """Call ``shutdown(timeout)``, logging and swallowing any failure."""
    if shutdown is None:
        return
    log = logger if logger is not None else _log
    try:
        shutdown(timeout)
    except Exception as exc:  # shutdown path must never propagate
        log.warning("tracing shutdown failed: error=%s", exc)