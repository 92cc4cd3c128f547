"""Root logger setup: stdout handler, context filter and JSON or key-value output."""

import json
import logging
import sys
from datetime import date, datetime, timezone
from typing import Any, Dict, Literal

from .context import get_log_context

LogFormat = Literal["json", "key-value"]

SERVICE_NAME = "invigilation-duty-notifier"

KEY_VALUE_LAYOUT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
KEY_VALUE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# LogRecord attributes that are never treated as extra fields
STANDARD_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "message", "pathname", "process",
    "processName", "relativeCreated", "thread", "threadName", "asctime",
    "exc_info", "exc_text", "stack_info", "taskName",
})

# Extra fields that may hold an invigilator's mail address
ADDRESS_FIELDS = ("recipient", "contact_address", "sender")


def mask_address(address: Any) -> Any:
    """Replace the local part of a mail address with its first letter and ***.

    Values that are not strings containing "@" are returned unchanged.
    """
    if not isinstance(address, str) or "@" not in address:
        return address

    local, _, domain = address.rpartition("@")
    return f"{local[:1]}***@{domain}"


class ContextualFilter(logging.Filter):
    """Stamps every record with service/environment and the active log_context.

    Fields passed explicitly through ``extra`` win over context fields. With
    mask_addresses on, address fields are masked before formatting.
    """

    def __init__(
        self,
        service: str = SERVICE_NAME,
        environment: str = "local",
        mask_addresses: bool = False,
    ):
        super().__init__()
        self.service = service
        self.environment = environment
        self.mask_addresses = mask_addresses

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service
        record.environment = self.environment

        for key, value in get_log_context().items():
            if not hasattr(record, key):
                setattr(record, key, value)

        if self.mask_addresses:
            for field_name in ADDRESS_FIELDS:
                value = getattr(record, field_name, None)
                if value is not None:
                    setattr(record, field_name, mask_address(value))

        return True


def _extra_fields(record: logging.LogRecord, skip=STANDARD_ATTRS) -> Dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in skip and not key.startswith("_")
    }


def _to_json_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    if value is None or isinstance(value, (str, int, float, bool, list, dict)):
        return value
    return str(value)


def _to_kv_value(value: Any) -> str:
    if isinstance(value, str):
        if any(ch in value for ch in ' =,'):
            return f'"{value}"'
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple, set, frozenset)):
        return ",".join(str(item) for item in value)
    return str(value)


class JSONFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, then extras."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: Dict[str, Any] = {
            "timestamp": created.strftime("%Y-%m-%dT%H:%M:%S.") + f"{created.microsecond // 1000:03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update({key: _to_json_value(value) for key, value in _extra_fields(record).items()})

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        # Duty time ranges carry an en dash
        return json.dumps(payload, ensure_ascii=False, default=str)


class KeyValueFormatter(logging.Formatter):
    """Human-readable line followed by sorted key=value extras."""

    SKIP_ATTRS = STANDARD_ATTRS | {"service", "environment"}

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = sorted(_extra_fields(record, self.SKIP_ATTRS).items())
        if not extras:
            return line
        return line + " " + " ".join(f"{key}={_to_kv_value(value)}" for key, value in extras)


def _build_formatter(format_type: str) -> logging.Formatter:
    if format_type == "json":
        return JSONFormatter()
    if format_type == "key-value":
        return KeyValueFormatter(KEY_VALUE_LAYOUT, datefmt=KEY_VALUE_DATEFMT)
    raise ValueError(f"Invalid log format: {format_type}. Must be 'json' or 'key-value'")


def configure_logging(
    level: str = "INFO",
    format_type: LogFormat = "key-value",
    environment: str = "local",
    mask_addresses: bool = False,
) -> None:
    """
    Replace the root logger's handlers with a single stdout handler.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        format_type: 'json' or 'key-value'
        environment: Environment label stamped on every record
        mask_addresses: Mask invigilator mail addresses in log output

    Raises:
        ValueError: If level or format_type is invalid
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_build_formatter(format_type))
    handler.addFilter(ContextualFilter(environment=environment, mask_addresses=mask_addresses))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    if numeric_level > logging.DEBUG:
        logging.getLogger("apscheduler").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={
            "event": "logging.configured",
            "component": "logging",
            "log_level": level.upper(),
            "log_format": format_type,
            "mask_addresses": mask_addresses,
        },
    )
