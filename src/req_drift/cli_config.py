"""
Configuration management for req-drift.

Settings come from defaults, an optional config file (JSON or YAML) and
``REQ_DRIFT_*`` environment variables, in that order.
"""

import json
import os
import shlex
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml
from rich.console import Console

from .error_handling import log_configuration_error

console = Console(stderr=True)

OUTPUT_FORMATS = ("console", "json")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class CheckConfig:
    """Collection and comparison configuration."""

    requirements_pattern: str = "requirements*.txt"
    manifest_name: str = "pyproject.toml"
    # None means "<current interpreter> -m pip freeze"
    freeze_command: Optional[List[str]] = None
    freeze_timeout_seconds: Optional[float] = None
    skip_comments: bool = True
    fail_on_drift: bool = False
    output_format: str = "console"


@dataclass
class LoggingConfig:
    """Logging and error handling configuration."""

    log_level: str = "WARNING"
    enable_sensitive_data_masking: bool = True


@dataclass
class ReqDriftConfig:
    """Main configuration containing all subsections."""

    check: CheckConfig = field(default_factory=CheckConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Global configuration instance
_global_config: Optional[ReqDriftConfig] = None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


# Expected type of every setting; None is accepted where the default is None.
_FIELD_TYPES: Dict[str, Dict[str, Tuple[Callable[[Any], bool], str]]] = {
    "check": {
        "requirements_pattern": (lambda v: isinstance(v, str), "a string"),
        "manifest_name": (lambda v: isinstance(v, str), "a string"),
        "freeze_command": (lambda v: v is None or _is_string_list(v), "a list of strings"),
        "freeze_timeout_seconds": (lambda v: v is None or _is_number(v), "a number"),
        "skip_comments": (lambda v: isinstance(v, bool), "a boolean"),
        "fail_on_drift": (lambda v: isinstance(v, bool), "a boolean"),
        "output_format": (lambda v: isinstance(v, str), "a string"),
    },
    "logging": {
        "log_level": (lambda v: isinstance(v, str), "a string"),
        "enable_sensitive_data_masking": (lambda v: isinstance(v, bool), "a boolean"),
    },
}


def _type_errors(config: ReqDriftConfig) -> List[str]:
    errors = []
    for section_name, fields in _FIELD_TYPES.items():
        section = getattr(config, section_name)
        for key, (is_valid, expected) in fields.items():
            if not is_valid(getattr(section, key)):
                errors.append(f"{section_name}.{key} must be {expected}")
    return errors


def validate_config_values(config: ReqDriftConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Every error starts with the ``section.key`` it refers to. Values of the
    wrong type are reported once and skip the range checks below.

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = _type_errors(config)
    mistyped = {error.split(" ", 1)[0] for error in errors}

    def check(key: str, failed: Callable[[], bool], message: str) -> None:
        if key not in mistyped and failed():
            errors.append(f"{key} {message}")

    check_config = config.check
    check(
        "check.requirements_pattern",
        lambda: not check_config.requirements_pattern,
        "must not be empty",
    )
    check(
        "check.requirements_pattern",
        lambda: "/" in check_config.requirements_pattern or "**" in check_config.requirements_pattern,
        "must match files in one directory",
    )
    check("check.manifest_name", lambda: not check_config.manifest_name, "must not be empty")
    check(
        "check.freeze_command",
        lambda: check_config.freeze_command is not None and not check_config.freeze_command,
        "must not be an empty list",
    )
    check(
        "check.freeze_timeout_seconds",
        lambda: check_config.freeze_timeout_seconds is not None
        and check_config.freeze_timeout_seconds <= 0,
        "must be positive",
    )
    check(
        "check.output_format",
        lambda: check_config.output_format not in OUTPUT_FORMATS,
        f"must be one of {', '.join(OUTPUT_FORMATS)}",
    )
    check(
        "logging.log_level",
        lambda: config.logging.log_level.upper() not in LOG_LEVELS,
        f"must be one of {', '.join(LOG_LEVELS)}",
    )

    return errors


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() in [".yaml", ".yml"]:
                return yaml.safe_load(f)
            elif config_path.suffix.lower() == ".json":
                return json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(
            f"⚠️  Error loading config from {config_path}: {e}", style="yellow"
        )
        log_configuration_error(
            f"Error loading config: {e}", "load_config_file", config_path=str(config_path)
        )

    return None


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".req-drift.json",
        Path.cwd() / ".req-drift.yaml",
        Path.cwd() / ".req-drift.yml",
        Path.home() / ".config" / "req-drift" / "config.json",
        Path.home() / ".config" / "req-drift" / "config.yaml",
        Path.home() / ".req-drift.json",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def load_environment_overrides(config: ReqDriftConfig) -> None:
    """Load environment variable overrides."""

    def get_env_bool(key: str, default: bool = False) -> bool:
        value = os.environ.get(key, "").lower()
        return value in ["true", "1", "yes", "on"] if value else default

    def get_env_float(key: str, default: Optional[float] = None) -> Optional[float]:
        try:
            return float(os.environ[key]) if key in os.environ else default
        except ValueError:
            console.print(f"⚠️  Invalid float value for {key}, using default", style="yellow")
            return default

    if pattern := os.environ.get("REQ_DRIFT_PATTERN"):
        config.check.requirements_pattern = pattern
    if manifest := os.environ.get("REQ_DRIFT_MANIFEST"):
        config.check.manifest_name = manifest
    if freeze_command := os.environ.get("REQ_DRIFT_FREEZE_COMMAND"):
        config.check.freeze_command = shlex.split(freeze_command)
    timeout = get_env_float("REQ_DRIFT_FREEZE_TIMEOUT")
    if timeout is not None:
        config.check.freeze_timeout_seconds = timeout

    config.check.skip_comments = get_env_bool(
        "REQ_DRIFT_SKIP_COMMENTS", config.check.skip_comments
    )
    config.check.fail_on_drift = get_env_bool(
        "REQ_DRIFT_FAIL_ON_DRIFT", config.check.fail_on_drift
    )

    if log_level := os.environ.get("REQ_DRIFT_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()


def apply_config_section(
    config: Any, section_data: Dict[str, Any], section_name: str
) -> None:
    """Apply configuration from dictionary to config section."""
    for key, value in section_data.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            console.print(
                f"⚠️  Unknown config key in {section_name}: {key}", style="yellow"
            )


def _warn_ignored(message: str, config_path: Path) -> None:
    console.print(f"⚠️  {message}, ignoring it", style="yellow", soft_wrap=True)
    log_configuration_error(message, "load_config", config_path=str(config_path))


def apply_config_file(
    config: ReqDriftConfig, file_config: Dict[str, Any], config_path: Path
) -> None:
    """Apply the ``check`` and ``logging`` sections; a section that is not a mapping is skipped."""
    for section_name in ("check", "logging"):
        if section_name not in file_config:
            continue
        section_data = file_config[section_name]
        if not isinstance(section_data, dict):
            _warn_ignored(
                f"Config section '{section_name}' in {config_path} must be a mapping",
                config_path,
            )
            continue
        apply_config_section(getattr(config, section_name), section_data, section_name)


def load_config() -> ReqDriftConfig:
    """Load configuration from file and environment."""
    global _global_config

    if _global_config is not None:
        return _global_config

    config = ReqDriftConfig()

    config_file = find_config_file()
    if config_file:
        file_config = load_config_file(config_file)
        if file_config is not None and not isinstance(file_config, dict):
            _warn_ignored(f"Config file {config_file} must hold a mapping", config_file)
        elif file_config:
            apply_config_file(config, file_config, config_file)

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")
            log_configuration_error(error, "load_config", key=error.split(" ", 1)[0])
        console.print("Using default values for invalid settings.", style="yellow")
        _restore_invalid_defaults(config, validation_errors)

    _global_config = config
    return config


def _restore_invalid_defaults(config: ReqDriftConfig, errors: List[str]) -> None:
    defaults = ReqDriftConfig()
    for error in errors:
        section, _, rest = error.partition(".")
        key = rest.split(" ", 1)[0]
        setattr(getattr(config, section), key, getattr(getattr(defaults, section), key))


def get_config() -> ReqDriftConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None


def create_sample_config() -> str:
    """Generate sample configuration."""
    return json.dumps(ReqDriftConfig().to_dict(), indent=2)
