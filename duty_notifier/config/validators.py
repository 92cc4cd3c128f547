"""Additional validation utilities for configuration."""

import warnings
from typing import Any, Dict, List


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Check configuration for settings that are valid but likely unintended.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages = []

    notice = config_dict.get("notice", {})
    if isinstance(notice, dict):
        bulk_subject = notice.get("bulk_subject")
        single_subject = notice.get("single_subject")
        if bulk_subject is None and single_subject is None:
            warning_messages.append(
                "No notice subjects configured; both bulk and single notices use 'Invigilation Duties'"
            )

        display_timezone = notice.get("display_timezone")
        if display_timezone is None or str(display_timezone).upper() == "UTC":
            warning_messages.append(
                "notice.display_timezone is UTC; duty times will be shown in UTC"
            )

    email = config_dict.get("email", {})
    if isinstance(email, dict) and email.get("transport", "smtp") == "smtp":
        if email.get("use_tls") is False:
            warning_messages.append("email.use_tls is false; SMTP credentials are sent in clear text")

    schedule = config_dict.get("schedule", {})
    if isinstance(schedule, dict):
        lookahead = schedule.get("lookahead_days")
        if isinstance(lookahead, int) and lookahead > 30:
            warning_messages.append(
                f"Large schedule.lookahead_days ({lookahead}) notifies invigilators far in advance"
            )

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """
    Emit warning messages using Python's warnings module.

    Args:
        warning_messages: List of warning messages to emit
    """
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
