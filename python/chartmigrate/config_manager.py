#!/usr/bin/env python3
"""
Configuration Manager for the ChartMuseum to OCI migration

This module handles loading configuration from config.yaml, environment
variables and command-line overrides, and freezes the result into a
RunConfig that is passed explicitly to every component of a run.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

import yaml

from chartmigrate.error_utils import ConfigError, create_config_error
from chartmigrate.models import HelmChart

TRUE_VALUES = ("true", "yes", "on", "1")
FALSE_VALUES = ("false", "no", "off", "0", "")


@dataclass(frozen=True)
class RunConfig:
    """Immutable settings for one migration run"""

    harbor_url: str
    username: str
    password: str
    dest_path: str = ""
    dest_project: str = ""
    projects: Tuple[str, ...] = ()
    insecure: bool = False
    plain_http: bool = False
    helm_binary: str = "helm"
    min_helm_version: str = "3.19.0"
    page_size: int = 10
    fetch_timeout: float = 5.0
    output_file: str = "reports/migration-report.json"
    dry_run: bool = False

    @property
    def harbor_host(self) -> str:
        """Registry host and port, without any userinfo from the URL"""
        parsed = urlparse(self.harbor_url)
        host = parsed.hostname or ""
        if ":" in host:
            host = f"[{host}]"
        return f"{host}:{parsed.port}" if parsed.port else host

    def oci_coordinate(self, chart: HelmChart) -> str:
        """Destination of a chart: oci://<host>/<project>[<dest_path>]"""
        project = self.dest_project or chart.project
        return f"oci://{self.harbor_host}/{project}{self.dest_path}"

    def redacted(self) -> Dict[str, Any]:
        """Settings safe to log or write into a report"""
        return {
            "harbor_url": self.harbor_url,
            "username": self.username,
            "dest_path": self.dest_path,
            "dest_project": self.dest_project,
            "projects": list(self.projects),
            "insecure": self.insecure,
            "plain_http": self.plain_http,
            "helm_binary": self.helm_binary,
            "min_helm_version": self.min_helm_version,
            "dry_run": self.dry_run,
        }


def normalize_dest_path(dest_path: Optional[str]) -> str:
    """Return the sub-path with a single leading slash and no trailing slash"""
    if not dest_path:
        return ""
    stripped = dest_path.strip().strip("/")
    return f"/{stripped}" if stripped else ""


class ConfigManager:
    """Manages configuration for the chart migration"""

    def __init__(self, config_file: str = None, validate: bool = True):
        """Initialize ConfigManager

        Args:
            config_file: Path to configuration YAML file (defaults to config.yaml or CONFIG_FILE env var)
            validate: If True, validate configuration on initialization
        """
        # Allow override via environment variable for containerized deployments
        if config_file is None:
            config_file = os.environ.get("CONFIG_FILE", "config.yaml")
        self.config_file = config_file
        self.config = self._load_config()
        self.overrides: Dict[str, Dict[str, Any]] = {}

        if validate:
            self.validate_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file with defaults"""
        default_config = {
            "harbor": {"url": "", "username": "", "password": "", "page_size": 10, "fetch_timeout": 5},
            "migration": {"dest_path": "", "dest_project": "", "projects": []},
            "helm": {"binary": "helm", "min_version": "3.19.0", "insecure": False, "plain_http": False},
            "reports": {"output_dir": "reports", "migration_report": "migration-report.json"},
        }

        try:
            if os.path.exists(self.config_file):
                with open(self.config_file, "r") as f:
                    user_config = yaml.safe_load(f) or {}
                return self._merge_config(default_config, user_config)
            else:
                logging.debug(f"Config file {self.config_file} not found, using defaults")
                return default_config
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(
                f"Error loading config file {self.config_file}",
                suggestions=["Check the file is readable and contains valid YAML"],
                details={"error": str(e)},
            )

    def _merge_config(self, default: Dict[str, Any], user: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge user config with defaults"""
        result = default.copy()
        for key, value in user.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def apply_overrides(self, overrides: Dict[str, Dict[str, Any]]) -> None:
        """Record command-line values. They win over environment, file and defaults; None values are ignored."""
        cleaned = {
            section: {key: value for key, value in values.items() if value is not None}
            for section, values in overrides.items()
        }
        self.overrides = self._merge_config(self.overrides, cleaned)

    def _get(self, section: str, key: str, env: Optional[str] = None, default: Any = None) -> Any:
        """Resolve a setting. Priority: command line -> environment -> config file -> default"""
        value = self.overrides.get(section, {}).get(key)
        if value is None and env:
            value = os.environ.get(env) or None
        if value is None:
            value = self.config.get(section, {}).get(key)
        return default if value is None else value

    def _get_bool(self, section: str, key: str, default: bool = False) -> bool:
        """Resolve a boolean setting; YAML or string values like "false" are parsed, not truth-tested"""
        value = self._get(section, key, default=default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in TRUE_VALUES:
            return True
        if isinstance(value, str) and value.strip().lower() in FALSE_VALUES:
            return False
        raise create_config_error(f"{section}.{key}", value, "must be true or false")

    # Harbor configuration
    def get_harbor_url(self) -> str:
        """Get Harbor URL from command line, environment or config"""
        return str(self._get("harbor", "url", env="HARBOR_URL", default="")).rstrip("/")

    def get_harbor_username(self) -> str:
        return self._get("harbor", "username", env="HARBOR_USERNAME", default="")

    def get_harbor_password(self) -> str:
        return self._get("harbor", "password", env="HARBOR_PASSWORD", default="")

    def get_page_size(self) -> int:
        """Get project listing page size, with type coercion"""
        size = self._get("harbor", "page_size", default=10)
        try:
            return int(size)
        except (ValueError, TypeError):
            raise create_config_error("harbor.page_size", size, "must be an integer")

    def get_fetch_timeout(self) -> float:
        """Get chart download timeout in seconds, with type coercion"""
        timeout = self._get("harbor", "fetch_timeout", default=5)
        try:
            return float(timeout)
        except (ValueError, TypeError):
            raise create_config_error("harbor.fetch_timeout", timeout, "must be a number")

    # Migration configuration
    def get_dest_path(self) -> str:
        return normalize_dest_path(self._get("migration", "dest_path", env="HARBOR_DEST_PATH", default=""))

    def get_dest_project(self) -> str:
        return self._get("migration", "dest_project", default="")

    def get_projects(self) -> Tuple[str, ...]:
        """Get the project filter, keeping first-seen order and dropping duplicates"""
        projects = self._get("migration", "projects", default=[])
        if isinstance(projects, str):
            projects = [projects]
        return tuple(dict.fromkeys(p for p in projects if p))

    # Helm configuration
    def get_helm_binary(self) -> str:
        return self._get("helm", "binary", env="HELM_BINARY", default="helm")

    def get_min_helm_version(self) -> str:
        return str(self._get("helm", "min_version", default="3.19.0"))

    def is_insecure(self) -> bool:
        return self._get_bool("helm", "insecure")

    def is_plain_http(self) -> bool:
        return self._get_bool("helm", "plain_http")

    # Report configuration
    def get_output_dir(self) -> str:
        return self._get("reports", "output_dir", default="reports")

    def get_migration_report_path(self) -> str:
        path = self._get("reports", "migration_report", default="migration-report.json")
        if os.path.isabs(path):
            return path
        return str(Path(self.get_output_dir()) / path)

    @staticmethod
    def _describe(error: ConfigError) -> str:
        reason = error.details.get("reason")
        if reason is None:
            return error.message
        return f"{error.details['field']} {reason}, got: {error.details['value']!r}"

    def validate_config(self) -> None:
        """Validate configuration values

        Raises:
            ConfigError: If configuration is invalid
        """
        errors = []

        url = self.get_harbor_url()
        if not url:
            errors.append("Missing required --url flag (or HARBOR_URL)")
        else:
            parsed = urlparse(url)
            try:
                port_ok = parsed.port is None or parsed.port > 0
            except ValueError:
                port_ok = False
            if parsed.scheme not in ("http", "https") or not parsed.hostname or not port_ok:
                errors.append(f"Harbor URL '{url}' is invalid (expected format: https://harbor.example.com)")
            elif parsed.username or parsed.password:
                errors.append("Harbor URL must not embed credentials; use --username and --password instead")

        if not self.get_harbor_username():
            errors.append("Missing required --username flag (or HARBOR_USERNAME)")

        if not self.get_harbor_password():
            errors.append("Missing required --password flag (or HARBOR_PASSWORD)")

        try:
            page_size = self.get_page_size()
            if page_size < 1:
                errors.append(f"harbor.page_size must be a positive integer, got: {page_size}")
        except ConfigError as e:
            errors.append(self._describe(e))

        try:
            timeout = self.get_fetch_timeout()
            if timeout <= 0:
                errors.append(f"harbor.fetch_timeout must be a positive number (seconds), got: {timeout}")
        except ConfigError as e:
            errors.append(self._describe(e))

        for check in (self.is_insecure, self.is_plain_http):
            try:
                check()
            except ConfigError as e:
                errors.append(self._describe(e))

        if not self.get_min_helm_version().strip():
            errors.append("helm.min_version is required and cannot be empty")

        if errors:
            error_msg = "Configuration validation failed:\n  " + "\n  ".join(errors)
            logging.error(error_msg)
            raise ConfigError(error_msg, suggestions=["Run with --help to see the available flags"])

    def to_run_config(self, dry_run: bool = False, output_file: Optional[str] = None) -> RunConfig:
        """Validate and freeze the configuration"""
        self.validate_config()
        return RunConfig(
            harbor_url=self.get_harbor_url(),
            username=self.get_harbor_username(),
            password=self.get_harbor_password(),
            dest_path=self.get_dest_path(),
            dest_project=self.get_dest_project(),
            projects=self.get_projects(),
            insecure=self.is_insecure(),
            plain_http=self.is_plain_http(),
            helm_binary=self.get_helm_binary(),
            min_helm_version=self.get_min_helm_version(),
            page_size=self.get_page_size(),
            fetch_timeout=self.get_fetch_timeout(),
            output_file=output_file or self.get_migration_report_path(),
            dry_run=dry_run,
        )
