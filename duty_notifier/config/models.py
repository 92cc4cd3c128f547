"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from duty_notifier.utils.timestamps import resolve_timezone

from .duration import DurationParseError, parse_duration, validate_duration_range


class MailTransportType(str, Enum):
    """Supported mail transports."""

    SMTP = "smtp"
    GRAPH = "graph"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class NoticeConfig(BaseModel):
    """Wording and signature of the duty notice."""

    exam_session: str = Field(
        ..., min_length=1, description="Exam session title shown in the intro sentence"
    )
    bulk_subject: str = Field(
        "Invigilation Duties", min_length=1, description="Subject of bulk run notices"
    )
    single_subject: str = Field(
        "Invigilation Duties", min_length=1, description="Subject of on-demand notices"
    )
    contact_email: str = Field(..., min_length=3, description="Address for queries")
    signatory_name: str = Field(..., min_length=1, description="Name in the signature block")
    signatory_title: str = Field(
        "Controller of Examinations", description="Title in the signature block"
    )
    institution: str = Field(..., min_length=1, description="Institution name")
    display_timezone: str = Field(
        "UTC", description="IANA timezone used to render duty clock times"
    )

    @field_validator(
        "exam_session", "bulk_subject", "single_subject", "contact_email",
        "signatory_name", "institution",
    )
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        """Strip whitespace from string fields."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("Field cannot be empty or whitespace-only")
        return stripped

    @field_validator("display_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject timezone names the zoneinfo database does not know."""
        resolve_timezone(v)
        return v


class EmailConfig(BaseModel):
    """Mail delivery settings."""

    transport: MailTransportType = Field(
        MailTransportType.SMTP, description="Mail transport (smtp or graph)"
    )
    use_tls: bool = Field(True, description="Use TLS/STARTTLS for SMTP connections")
    sender_name: Optional[str] = Field(
        None, description="Display name of the sender (overrides SMTP_SENDER_NAME)"
    )

    model_config = {"use_enum_values": True}


class ScheduleConfig(BaseModel):
    """Rolling-window settings for daemon mode."""

    interval: str = Field("1h", description="How often the bulk run is triggered")
    lookahead_days: int = Field(
        7, ge=0, le=90, description="Days after today included in each run's window"
    )

    # Computed field
    interval_seconds: Optional[int] = None

    @field_validator("interval")
    @classmethod
    def validate_interval(cls, v: str) -> str:
        """Validate and parse the run interval."""
        try:
            seconds = parse_duration(v)
            validate_duration_range(seconds, min_seconds=300, max_seconds=86400)
            return v
        except DurationParseError as e:
            raise ValueError(str(e)) from e

    @model_validator(mode="after")
    def compute_interval_seconds(self):
        self.interval_seconds = parse_duration(self.interval)
        return self


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )
    mask_addresses: bool = Field(
        False, description="Mask the local part of mail addresses in log output"
    )

    model_config = {"use_enum_values": True}


class AdvancedConfig(BaseModel):
    """Advanced runtime settings."""

    http_request_timeout: int = Field(
        30, ge=5, le=300, description="Request timeout for mail transport calls (seconds)"
    )


class AppConfig(BaseModel):
    """Root configuration object for the invigilation duty notifier."""

    notice: NoticeConfig = Field(..., description="Notice wording and signature")
    email: EmailConfig = Field(default_factory=EmailConfig, description="Email settings")
    schedule: ScheduleConfig = Field(
        default_factory=ScheduleConfig, description="Daemon mode schedule"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    advanced: AdvancedConfig = Field(
        default_factory=AdvancedConfig, description="Advanced runtime settings"
    )
