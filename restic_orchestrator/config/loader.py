#!/usr/bin/env python3
"""
Configuration loader for restic-orchestrator.
Loads settings from a JSON options file, merges defaults and an optional
secrets file, and returns an immutable Settings object.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Any, Dict, Tuple, List

from restic_orchestrator.core.exceptions import ConfigurationError
from restic_orchestrator.core.logger import LOG_LEVELS

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "RESTIC_ORCHESTRATOR_CONFIG"
DEFAULT_CONFIG_PATH = "/etc/restic-orchestrator/config.json"


@dataclass(frozen=True)
class BackupSource:
    """A configured backup source"""
    identifier: str                      # path, serial number, volume label or disk name
    sub_paths: Tuple[str, ...] = ()      # empty = whole root


@dataclass(frozen=True)
class SmtpSettings:
    """Outgoing mail settings for reports"""
    host: str
    port: int = 587
    username: str = ""
    password: str = ""
    sender: str = ""
    recipients: Tuple[str, ...] = ()
    use_ssl: bool = False
    starttls: bool = True


@dataclass(frozen=True)
class Settings:
    """Immutable orchestrator settings"""
    repository: str
    log_path: Path
    state_file: Path
    engine_path: str = "restic"
    sources: Tuple[BackupSource, ...] = ()
    ignore_missing_sources: bool = False
    global_exclude_file: Optional[Path] = None
    local_exclude_file: Optional[Path] = None
    use_snapshots: bool = True
    additional_backup_args: Tuple[str, ...] = ()
    additional_maintenance_args: Tuple[str, ...] = ()
    retention_policy: Tuple[str, ...] = (
        "--keep-daily", "30", "--keep-weekly", "52",
        "--keep-monthly", "24", "--keep-yearly", "10",
    )
    prune_policy: Tuple[str, ...] = ("--max-unused", "1%")
    global_retry_attempts: int = 4
    retry_cooldown_seconds: int = 900
    internet_test_attempts: int = 10
    internet_test_delay_seconds: int = 30
    avoid_metered_networks: bool = False
    maintenance_enabled: bool = True
    maintenance_interval: int = 7
    maintenance_days: int = 30
    deep_maintenance_days: int = 90
    self_update_enabled: bool = True
    lock_release_grace_seconds: int = 30
    log_retention_days: int = 60
    history_limit: int = 200
    send_on_success: bool = True
    success_hook: Tuple[str, ...] = ()
    failure_hook: Tuple[str, ...] = ()
    hook_timeout: int = 300
    smtp: Optional[SmtpSettings] = None
    webhook_url: str = ""
    log_level: str = "INFO"
    environment: Dict[str, str] = field(default_factory=dict, hash=False)

    @property
    def application_log(self) -> Path:
        return self.log_path / "restic-orchestrator.log"

    @property
    def history_file(self) -> Path:
        return self.log_path / "run-history.jsonl"


class ConfigLoader:
    """Loads and validates configuration from a JSON options file"""

    DEFAULT_CONFIG: Dict[str, Any] = {
        "repository": "",
        "log_path": "/var/log/restic-orchestrator",
        "state_file": "",
        "engine_path": "restic",
        "sources": [],
        "ignore_missing_sources": False,
        "global_exclude_file": "",
        "local_exclude_file": "",
        "use_snapshots": True,
        "additional_backup_args": [],
        "additional_maintenance_args": [],
        "retention_policy": list(Settings.retention_policy),
        "prune_policy": list(Settings.prune_policy),
        "global_retry_attempts": 4,
        "retry_cooldown_seconds": 900,
        "internet_test_attempts": 10,
        "internet_test_delay_seconds": 30,
        "avoid_metered_networks": False,
        "maintenance_enabled": True,
        "maintenance_interval": 7,
        "maintenance_days": 30,
        "deep_maintenance_days": 90,
        "self_update_enabled": True,
        "lock_release_grace_seconds": 30,
        "log_retention_days": 60,
        "history_limit": 200,
        "send_on_success": True,
        "success_hook": [],
        "failure_hook": [],
        "hook_timeout": 300,
        "smtp": None,
        "webhook_url": "",
        "log_level": "INFO",
        "environment": {},
        "secrets_file": "",
    }

    @staticmethod
    def resolve_path(config_path: Optional[str] = None) -> Path:
        """Pick the config path: explicit argument, then environment, then default"""
        return Path(config_path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)

    @staticmethod
    def load(config_path: Optional[str] = None) -> Settings:
        """
        Load configuration from a JSON options file.

        Args:
            config_path: Path to the options file

        Returns:
            Settings object with all values

        Raises:
            ConfigurationError: If the file is missing, invalid JSON or fails validation
        """
        config_file = ConfigLoader.resolve_path(config_path)
        user_config = ConfigLoader.get_raw_config(config_file)

        config_dict = ConfigLoader.DEFAULT_CONFIG.copy()
        config_dict.update(user_config)

        secrets_file = config_dict.get("secrets_file")
        if secrets_file:
            ConfigLoader._merge_secrets(config_dict, Path(secrets_file))

        settings = ConfigLoader._create_settings(config_dict)

        logger.debug(f"Configuration loaded from {config_file}")
        return settings

    @staticmethod
    def get_raw_config(config_file: Path) -> Dict[str, Any]:
        """
        Read the raw options dictionary.

        Raises:
            ConfigurationError: If the file is missing or not a JSON object
        """
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in config file {config_file}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {config_file}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {config_file} must contain a JSON object")
        return data

    @staticmethod
    def _merge_secrets(config_dict: Dict[str, Any], secrets_path: Path) -> None:
        """Merge engine environment and SMTP password from the secrets file"""
        secrets = ConfigLoader.get_raw_config(secrets_path)

        environment = dict(config_dict.get("environment") or {})
        environment.update(secrets.get("environment") or {})
        config_dict["environment"] = environment

        smtp_password = secrets.get("smtp_password")
        if smtp_password and config_dict.get("smtp"):
            smtp = dict(config_dict["smtp"])
            smtp["password"] = smtp_password
            config_dict["smtp"] = smtp

    @staticmethod
    def _create_settings(config_dict: dict) -> Settings:
        """Create Settings object from dictionary with validation"""
        try:
            log_path = Path(str(config_dict.get("log_path"))).expanduser()
            state_file = config_dict.get("state_file") or str(log_path / "state.json")

            settings = Settings(
                repository=str(config_dict.get("repository", "")),
                log_path=log_path,
                state_file=Path(str(state_file)).expanduser(),
                engine_path=str(config_dict.get("engine_path", "restic")),
                sources=ConfigLoader._parse_sources(config_dict.get("sources") or []),
                ignore_missing_sources=bool(config_dict.get("ignore_missing_sources")),
                global_exclude_file=ConfigLoader._optional_path(config_dict.get("global_exclude_file")),
                local_exclude_file=ConfigLoader._optional_path(config_dict.get("local_exclude_file")),
                use_snapshots=bool(config_dict.get("use_snapshots", True)),
                additional_backup_args=ConfigLoader._str_tuple(config_dict.get("additional_backup_args")),
                additional_maintenance_args=ConfigLoader._str_tuple(
                    config_dict.get("additional_maintenance_args")
                ),
                retention_policy=ConfigLoader._str_tuple(config_dict.get("retention_policy")),
                prune_policy=ConfigLoader._str_tuple(config_dict.get("prune_policy")),
                global_retry_attempts=int(config_dict.get("global_retry_attempts")),
                retry_cooldown_seconds=int(config_dict.get("retry_cooldown_seconds")),
                internet_test_attempts=int(config_dict.get("internet_test_attempts")),
                internet_test_delay_seconds=int(config_dict.get("internet_test_delay_seconds")),
                avoid_metered_networks=bool(config_dict.get("avoid_metered_networks")),
                maintenance_enabled=bool(config_dict.get("maintenance_enabled")),
                maintenance_interval=int(config_dict.get("maintenance_interval")),
                maintenance_days=int(config_dict.get("maintenance_days")),
                deep_maintenance_days=int(config_dict.get("deep_maintenance_days")),
                self_update_enabled=bool(config_dict.get("self_update_enabled")),
                lock_release_grace_seconds=int(config_dict.get("lock_release_grace_seconds")),
                log_retention_days=int(config_dict.get("log_retention_days")),
                history_limit=int(config_dict.get("history_limit")),
                send_on_success=bool(config_dict.get("send_on_success")),
                success_hook=ConfigLoader._str_tuple(config_dict.get("success_hook")),
                failure_hook=ConfigLoader._str_tuple(config_dict.get("failure_hook")),
                hook_timeout=int(config_dict.get("hook_timeout")),
                smtp=ConfigLoader._parse_smtp(config_dict.get("smtp")),
                webhook_url=str(config_dict.get("webhook_url") or ""),
                log_level=str(config_dict.get("log_level", "INFO")),
                environment={str(k): str(v) for k, v in (config_dict.get("environment") or {}).items()},
            )
        except (ValueError, TypeError, AttributeError) as e:
            raise ConfigurationError(f"Invalid configuration value: {e}") from e

        ConfigLoader._validate_settings(settings)
        return settings

    @staticmethod
    def _parse_sources(raw_sources: List[Any]) -> Tuple[BackupSource, ...]:
        sources = []
        for raw in raw_sources:
            if isinstance(raw, str):
                sources.append(BackupSource(identifier=raw))
            elif isinstance(raw, dict):
                sources.append(BackupSource(
                    identifier=str(raw["identifier"]),
                    sub_paths=ConfigLoader._str_tuple(raw.get("sub_paths")),
                ))
            else:
                raise TypeError(f"Unsupported source entry: {raw!r}")
        return tuple(sources)

    @staticmethod
    def _parse_smtp(raw: Optional[Dict[str, Any]]) -> Optional[SmtpSettings]:
        if not raw:
            return None
        recipients = raw.get("recipients") or []
        if isinstance(recipients, str):
            recipients = [r.strip() for r in recipients.split(",") if r.strip()]
        return SmtpSettings(
            host=str(raw["host"]),
            port=int(raw.get("port", 587)),
            username=str(raw.get("username", "")),
            password=str(raw.get("password", "")),
            sender=str(raw.get("sender") or raw.get("username", "")),
            recipients=tuple(str(r) for r in recipients),
            use_ssl=bool(raw.get("use_ssl", False)),
            starttls=bool(raw.get("starttls", True)),
        )

    @staticmethod
    def _optional_path(value: Any) -> Optional[Path]:
        return Path(str(value)).expanduser() if value else None

    @staticmethod
    def _str_tuple(value: Any) -> Tuple[str, ...]:
        if not value:
            return ()
        if isinstance(value, str):
            return (value,)
        return tuple(str(v) for v in value)

    @staticmethod
    def _validate_settings(settings: Settings) -> None:
        """Validate configuration values"""
        errors = []

        if not settings.repository:
            errors.append("repository must be set")

        if not settings.sources:
            errors.append("at least one backup source must be configured")

        if settings.global_retry_attempts < 1:
            errors.append(f"global_retry_attempts must be >= 1, got {settings.global_retry_attempts}")

        for name in ("retry_cooldown_seconds", "internet_test_delay_seconds",
                     "lock_release_grace_seconds", "log_retention_days", "hook_timeout"):
            value = getattr(settings, name)
            if value < 0:
                errors.append(f"{name} must be >= 0, got {value}")

        if settings.maintenance_interval < 1:
            errors.append(f"maintenance_interval must be >= 1, got {settings.maintenance_interval}")

        if settings.maintenance_days < 0:
            errors.append(f"maintenance_days must be >= 0, got {settings.maintenance_days}")

        if settings.smtp and not settings.smtp.recipients:
            errors.append("smtp.recipients must list at least one address")

        if settings.log_level.upper() not in LOG_LEVELS:
            errors.append(f"log_level must be one of {sorted(LOG_LEVELS)}, got {settings.log_level}")

        if errors:
            error_msg = "; ".join(errors)
            logger.error(f"Configuration validation failed: {error_msg}")
            raise ConfigurationError(f"Invalid configuration: {error_msg}")
