"""Logging setup for the relayer: console formatter, Cloud Logging, trace context."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
import time
import traceback
from collections.abc import Mapping
from dataclasses import asdict, is_dataclass
from logging.config import dictConfig
from typing import Any

from opentelemetry import baggage, trace

_PACKAGE_ROOT = "kingtiles_relayer"
_CLOUD_HANDLER = "cloud_logging"
_CLOUD_LOG_NAME = "kingtiles-relayer"

_RELAYER_LOGGERS: dict[str, dict[str, Any]] = {
    "kingtiles_relayer.ticks": {"level": "INFO"},
    "kingtiles_relayer.settlement": {"level": "INFO"},
}


def _level(env_var: str, default: str) -> str:
    return os.getenv(env_var, default).upper()


def _json_lines_enabled() -> bool:
    # managed runtimes ingest one JSON object per line as a structured payload
    return bool(os.getenv("K_SERVICE") or os.getenv("KUBERNETES_SERVICE_HOST"))


class ExtrasFormatter(logging.Formatter):
    """Append the record's ``data`` payload as compact JSON."""

    def format(self, record: logging.LogRecord) -> str:
        if _json_lines_enabled():
            return json.dumps(_json_line(record), sort_keys=True, separators=(",", ":"))
        formatted = super().format(record)
        data = record.__dict__.get("data")
        if not data:
            return formatted
        try:
            encoded = json.dumps(data, sort_keys=True, separators=(",", ":"))
        except TypeError:
            encoded = json.dumps(_sanitize(data), sort_keys=True, separators=(",", ":"))
        return f"{formatted} | data={encoded}"


def _json_line(record: logging.LogRecord) -> dict[str, Any]:
    data = record.__dict__.get("data")
    payload: dict[str, Any] = {
        "message": record.getMessage(),
        "severity": record.levelname,
        "logger": record.name,
        "timestamp": f"{time.strftime('%Y-%m-%dT%H:%M:%S', time.gmtime(record.created))}.{int(record.msecs):03d}Z",
    }
    if data:
        payload["data"] = _sanitize(data)
    if record.exc_info:
        payload["exception"] = "".join(traceback.format_exception(*record.exc_info)).rstrip("\n")
    json_fields = record.__dict__.get("json_fields")
    if isinstance(json_fields, Mapping):
        for key, value in _sanitize(json_fields).items():
            payload.setdefault(key, value)
    return payload


class CloudJsonSanitizer(logging.Filter):
    """Make ``data``/``json_fields`` serializable before Cloud Logging ships them."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - thin wrapper
        fields = record.__dict__
        if "data" in fields:
            fields["data"] = _sanitize(fields["data"])
            json_fields = fields.get("json_fields")
            merged = dict(json_fields) if isinstance(json_fields, Mapping) else {}
            merged.setdefault("data", fields["data"])
            fields["json_fields"] = merged
        return True


class OtelContextLogFilter(logging.Filter):
    """Copy the active span ids and baggage into ``json_fields``."""

    def __init__(self, *, gcp_project_id: str | None = None) -> None:
        super().__init__()
        self._gcp_project_id = gcp_project_id.strip() if gcp_project_id else None

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - thin wrapper
        existing = record.__dict__.get("json_fields")
        json_fields: dict[str, Any] = dict(existing) if isinstance(existing, Mapping) else {}
        otel: dict[str, Any] = {}

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            trace_id = f"{span_context.trace_id:032x}"
            span_id = f"{span_context.span_id:016x}"
            otel["trace_id"] = trace_id
            otel["span_id"] = span_id
            if self._gcp_project_id:
                json_fields.setdefault("logging.googleapis.com/trace", f"projects/{self._gcp_project_id}/traces/{trace_id}")
                json_fields.setdefault("logging.googleapis.com/spanId", span_id)
                json_fields.setdefault("logging.googleapis.com/trace_sampled", bool(span_context.trace_flags.sampled))

        values = baggage.get_all()
        if values:
            otel["baggage"] = {key: str(value) for key, value in values.items()}
        if otel:
            json_fields["otel"] = otel
            record.__dict__["json_fields"] = json_fields
        return True


def build_log_config(
    *,
    cloud_logging_enabled: bool = False,
    gcp_project: str | None = None,
    cloud_log_labels: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return a dictConfig mapping for the relayer."""
    handler_names = ["console"]
    handlers: dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "console",
            "stream": "ext://sys.stdout",
            "filters": ["otel_context"],
        }
    }
    if cloud_logging_enabled:
        if not gcp_project:
            raise RuntimeError("GCP project required when cloud logging is enabled")
        handlers[_CLOUD_HANDLER] = _cloud_logging_handler(gcp_project, cloud_log_labels)
        handler_names.append(_CLOUD_HANDLER)

    def _logger(level_env: str, default: str) -> dict[str, Any]:
        return {"level": _level(level_env, default), "handlers": list(handler_names), "propagate": False}

    loggers: dict[str, dict[str, Any]] = {
        "uvicorn": _logger("UVICORN_LOG_LEVEL", "INFO"),
        "uvicorn.error": _logger("UVICORN_LOG_LEVEL", "INFO"),
        "uvicorn.access": _logger("UVICORN_ACCESS_LOG_LEVEL", "WARNING"),
        "httpx": _logger("HTTPX_LOG_LEVEL", "WARNING"),
        "httpcore": _logger("HTTPX_LOG_LEVEL", "WARNING"),
        "websockets.client": _logger("WEBSOCKETS_LOG_LEVEL", "WARNING"),
    }
    loggers.update({name: dict(config) for name, config in _RELAYER_LOGGERS.items()})

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "()": ExtrasFormatter,
                "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S",
            }
        },
        "filters": {
            "otel_context": {"()": OtelContextLogFilter, "gcp_project_id": gcp_project},
            "cloud_json_sanitizer": {"()": CloudJsonSanitizer},
        },
        "handlers": handlers,
        "root": {"level": _level("LOG_LEVEL", "INFO"), "handlers": list(handler_names)},
        "loggers": loggers,
    }


def _cloud_logging_handler(project: str, labels: Mapping[str, str] | None) -> dict[str, Any]:
    from google.cloud import logging as gcp_logging
    from google.cloud.logging_v2.resource import Resource

    credentials = _service_account_credentials(os.getenv("GCP_SERVICE_ACCOUNT_CREDENTIAL_BASE64"))
    client = gcp_logging.Client(project=project, credentials=credentials)  # type: ignore[no-untyped-call]
    logging.getLogger("kingtiles_relayer.observability").debug(
        "created google cloud logging client",
        extra={"data": {"project": project, "explicit_credentials": credentials is not None}},
    )
    return {
        "level": "INFO",
        "class": "google.cloud.logging_v2.handlers.handlers.CloudLoggingHandler",
        "client": client,
        "name": _CLOUD_LOG_NAME,
        "resource": Resource("global", {"project_id": project}),
        "labels": dict(labels or {}),
        "formatter": "console",
        "filters": ["otel_context", "cloud_json_sanitizer"],
    }


def _service_account_credentials(blob: str | None) -> Any:
    if not blob or not blob.strip():
        return None
    from google.oauth2.service_account import Credentials

    try:
        info = json.loads(base64.b64decode(blob.strip().encode("utf-8"), validate=True).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        raise ValueError("GCP_SERVICE_ACCOUNT_CREDENTIAL_BASE64 is not base64-encoded JSON") from exc
    if not isinstance(info, dict):
        raise ValueError("GCP_SERVICE_ACCOUNT_CREDENTIAL_BASE64 must decode to a JSON object")
    return Credentials.from_service_account_info(  # type: ignore[no-untyped-call]
        info,
        scopes=("https://www.googleapis.com/auth/cloud-platform",),
    )


def _sanitize(value: Any, depth: int = 8) -> Any:
    """Return a JSON-serializable copy, falling back to ``str`` for unknown types."""
    if depth <= 0:
        return "<depth_exceeded>"
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes len={len(value)}>"
    if is_dataclass(value) and not isinstance(value, type):
        return _sanitize(asdict(value), depth - 1)
    if isinstance(value, Mapping):
        return {str(key): _sanitize(item, depth - 1) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_sanitize(item, depth - 1) for item in value]
    return str(value)


def configure_logging(
    *,
    cloud_logging_enabled: bool = False,
    gcp_project: str | None = None,
    cloud_log_labels: Mapping[str, str] | None = None,
) -> None:
    config = build_log_config(
        cloud_logging_enabled=cloud_logging_enabled,
        gcp_project=gcp_project,
        cloud_log_labels=cloud_log_labels,
    )
    dictConfig(config)
    # child loggers inherit the root level unless configured explicitly
    root_level = logging.getLogger().level
    package = logging.getLogger(_PACKAGE_ROOT)
    package.setLevel(root_level)
    package.propagate = True
    for name, entry in logging.Logger.manager.loggerDict.items():
        if isinstance(entry, logging.Logger) and name.startswith(f"{_PACKAGE_ROOT}.") and name not in _RELAYER_LOGGERS:
            entry.setLevel(logging.NOTSET)


def init_logging() -> None:
    """Console-only logging used before settings are loaded."""
    configure_logging(cloud_logging_enabled=False)


def enable_cloud_logging(*, gcp_project: str, cloud_log_labels: Mapping[str, str] | None = None) -> None:
    """Reconfigure with the Cloud Logging handler attached next to the console."""
    configure_logging(cloud_logging_enabled=True, gcp_project=gcp_project, cloud_log_labels=cloud_log_labels)


def shutdown_logging() -> None:
    """Flush and close Cloud Logging handlers so buffered entries are not lost."""
    from google.cloud.logging_v2.handlers.handlers import CloudLoggingHandler

    seen: set[int] = set()
    loggers = [logging.getLogger()]
    loggers.extend(
        entry for entry in logging.Logger.manager.loggerDict.values() if isinstance(entry, logging.Logger)
    )
    for entry in loggers:
        for handler in entry.handlers:
            if id(handler) in seen or not isinstance(handler, CloudLoggingHandler):
                continue
            seen.add(id(handler))
            try:
                handler.flush()  # type: ignore[no-untyped-call]
                handler.close()  # type: ignore[no-untyped-call]
            except Exception as exc:  # noqa: BLE001
                logging.getLogger("kingtiles_relayer.observability").warning(
                    "cloud logging handler shutdown failed", extra={"data": {"error": str(exc)}}
                )


__all__ = [
    "CloudJsonSanitizer",
    "ExtrasFormatter",
    "OtelContextLogFilter",
    "build_log_config",
    "configure_logging",
    "enable_cloud_logging",
    "init_logging",
    "shutdown_logging",
]
