"""Environment variable loading and validation."""

import os
from typing import Optional

from email_validator import EmailNotValidError, validate_email

from .exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./data/duty_notifier.db"
VALID_TRANSPORTS = ("smtp", "graph")


class EnvironmentConfig:
    """Environment variable configuration holder."""

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_pass: Optional[str] = None,
        smtp_sender_name: Optional[str] = None,
        mail_from: Optional[str] = None,
        graph_tenant_id: Optional[str] = None,
        graph_client_id: Optional[str] = None,
        graph_client_secret: Optional[str] = None,
        log_level: Optional[str] = None,
        database_url: Optional[str] = None,
        environment: Optional[str] = None,
    ):
        """Initialize environment configuration."""
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port if smtp_port is not None else 587
        self.smtp_user = smtp_user
        self.smtp_pass = smtp_pass
        self.smtp_sender_name = smtp_sender_name
        self.mail_from = mail_from
        self.graph_tenant_id = graph_tenant_id
        self.graph_client_id = graph_client_id
        self.graph_client_secret = graph_client_secret
        self.log_level = log_level
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.environment = environment or "development"

    def __repr__(self) -> str:
        # Secrets stay out of reprs and log lines
        return (
            f"EnvironmentConfig(smtp_host={self.smtp_host!r}, smtp_port={self.smtp_port!r}, "
            f"mail_from={self.mail_from!r}, database_url={self.database_url!r}, "
            f"environment={self.environment!r})"
        )


def load_environment_config(transport: str = "smtp") -> EnvironmentConfig:
    """
    Load and validate environment variables.

    Required for the SMTP transport:
    - SMTP_HOST: SMTP server hostname
    - SMTP_PORT: SMTP server port (1-65535)

    Required for the Graph transport:
    - GRAPH_TENANT_ID, GRAPH_CLIENT_ID, GRAPH_CLIENT_SECRET: App registration
    - MAIL_FROM: Mailbox the notices are sent from

    Optional environment variables:
    - SMTP_USER / SMTP_PASS: SMTP authentication (both or neither)
    - SMTP_SENDER_NAME: Display name for the sender
    - MAIL_FROM: Sender address (defaults to SMTP_USER for SMTP)
    - LOG_LEVEL: Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - DATABASE_URL: Database URL (default: sqlite:///./data/duty_notifier.db)
    - ENVIRONMENT: Deployment environment name, added to every log line

    Args:
        transport: Mail transport selected in config.yaml ("smtp" or "graph")

    Returns:
        EnvironmentConfig object with validated values

    Raises:
        ConfigurationError: If required variables are missing or invalid
    """
    errors = []

    smtp_host = os.getenv("SMTP_HOST")
    smtp_port_str = os.getenv("SMTP_PORT")
    smtp_user = os.getenv("SMTP_USER")
    smtp_pass = os.getenv("SMTP_PASS")
    smtp_sender_name = os.getenv("SMTP_SENDER_NAME")
    mail_from = os.getenv("MAIL_FROM")
    graph_tenant_id = os.getenv("GRAPH_TENANT_ID")
    graph_client_id = os.getenv("GRAPH_CLIENT_ID")
    graph_client_secret = os.getenv("GRAPH_CLIENT_SECRET")
    log_level = os.getenv("LOG_LEVEL")
    database_url = os.getenv("DATABASE_URL")
    environment = os.getenv("ENVIRONMENT")

    if transport not in VALID_TRANSPORTS:
        errors.append(
            f"Unknown mail transport: '{transport}'. Must be one of: {', '.join(VALID_TRANSPORTS)}"
        )

    if transport == "smtp":
        if not smtp_host:
            errors.append("Missing required environment variable: SMTP_HOST")
        if not smtp_port_str:
            errors.append("Missing required environment variable: SMTP_PORT")

        if smtp_user and not smtp_pass:
            errors.append(
                "SMTP_USER is set but SMTP_PASS is not. Both must be set for authentication."
            )
        elif smtp_pass and not smtp_user:
            errors.append(
                "SMTP_PASS is set but SMTP_USER is not. Both must be set for authentication."
            )

    if transport == "graph":
        for name, value in (
            ("GRAPH_TENANT_ID", graph_tenant_id),
            ("GRAPH_CLIENT_ID", graph_client_id),
            ("GRAPH_CLIENT_SECRET", graph_client_secret),
            ("MAIL_FROM", mail_from),
        ):
            if not value:
                errors.append(f"Missing required environment variable: {name}")

    smtp_port = None
    if smtp_port_str:
        try:
            smtp_port = int(smtp_port_str)
            if smtp_port < 1 or smtp_port > 65535:
                errors.append(
                    f"Invalid SMTP_PORT: {smtp_port}. Must be between 1 and 65535."
                )
        except ValueError:
            errors.append(
                f"Invalid SMTP_PORT: '{smtp_port_str}'. Must be a valid integer."
            )

    if mail_from and not _is_valid_email(mail_from):
        errors.append(f"Invalid email address format in MAIL_FROM: '{mail_from}'")

    if log_level:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if log_level.upper() not in valid_levels:
            errors.append(
                f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(valid_levels)}"
            )

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your credentials",
                "Set the variables required by email.transport in config.yaml",
                "Check that MAIL_FROM is a valid address",
                "Verify SMTP_PORT is a number between 1 and 65535",
            ],
        )

    return EnvironmentConfig(
        smtp_host=smtp_host,
        smtp_port=smtp_port,
        smtp_user=smtp_user,
        smtp_pass=smtp_pass,
        smtp_sender_name=smtp_sender_name,
        mail_from=mail_from,
        graph_tenant_id=graph_tenant_id,
        graph_client_id=graph_client_id,
        graph_client_secret=graph_client_secret,
        log_level=log_level.upper() if log_level else None,
        database_url=database_url,
        environment=environment,
    )


def _is_valid_email(email: str) -> bool:
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True
