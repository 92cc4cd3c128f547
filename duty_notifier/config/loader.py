"""Load config.yaml and the environment into validated configuration objects."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .models import AppConfig
from .validators import check_for_warnings, emit_warnings

DEFAULT_CONFIG_LOCATIONS = (
    Path("config.yaml"),
    Path("config") / "config.yaml",
)

EXAMPLE_HINT = "Copy config.example.yaml to config.yaml"
SCHEMA_HINT = "Review config.example.yaml for correct format"


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load the YAML configuration and the environment variables it implies.

    Without config_path, ./config.yaml and then ./config/config.yaml are
    tried. Which environment variables are required depends on the
    configured mail transport.

    Raises:
        ConfigurationError: Missing file, bad YAML, schema violations or
            missing environment variables
    """
    app_config = parse_config_file(_find_config_file(config_path))
    env_config = load_environment_config(transport=app_config.email.transport)
    return app_config, env_config


def _read_yaml(config_file: Path) -> Any:
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(
            f"Configuration file not found: {config_file}",
            suggestions=[EXAMPLE_HINT],
        )
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse YAML configuration: {e}",
            suggestions=["Check indentation (spaces only) and quoting in the file"],
        )
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read configuration file {config_file}: {e}",
            suggestions=["Check file permissions"],
        )


def parse_config_file(config_file: Path) -> AppConfig:
    """
    Read and validate one YAML configuration file. Environment variables are
    not consulted.

    Raises:
        ConfigurationError: If the file cannot be read, parsed or validated
    """
    raw = _read_yaml(config_file)

    if not raw:
        raise ConfigurationError("Configuration file is empty", suggestions=[EXAMPLE_HINT])
    if not isinstance(raw, dict):
        raise ConfigurationError(
            "Configuration file must contain a mapping at the top level",
            suggestions=[SCHEMA_HINT],
        )

    warnings = check_for_warnings(raw)
    if warnings:
        emit_warnings(warnings)

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(
            "Configuration validation failed",
            errors=[_describe_error(item) for item in e.errors()],
            suggestions=[SCHEMA_HINT],
        )


def _describe_error(item: Dict[str, Any]) -> str:
    """One readable line per pydantic error, keyed by the dotted field path."""
    field_path = " -> ".join(str(loc) for loc in item["loc"])
    error_type = item["type"]

    if error_type == "missing":
        return f"Missing required field: {field_path}"
    if error_type.endswith("_type"):
        expected = error_type[: -len("_type")]
        return f"Invalid type for '{field_path}': expected {expected}, got {item.get('input')!r}"
    return f"{field_path}: {item['msg']}"


def _find_config_file(config_path: Optional[Path] = None) -> Path:
    if config_path is not None:
        if not config_path.exists():
            raise ConfigurationError(
                f"Specified configuration file not found: {config_path}",
                suggestions=["Check the --config path"],
            )
        return config_path

    found = next((candidate for candidate in DEFAULT_CONFIG_LOCATIONS if candidate.exists()), None)
    if found is None:
        raise ConfigurationError(
            "Configuration file not found",
            errors=[f"Tried: {candidate}" for candidate in DEFAULT_CONFIG_LOCATIONS],
            suggestions=[EXAMPLE_HINT, "Use --config to point at another file"],
        )
    return found


def validate_config_file(config_path: Path) -> bool:
    """Check a configuration file and print the verdict; returns True when valid."""
    try:
        parse_config_file(config_path)
    except ConfigurationError as e:
        print(f"✗ Configuration validation failed:\n{e}")
        return False

    print(f"✓ Configuration file {config_path} is valid")
    return True
