"""
Configuration management for the cost exporter.

Uses dynaconf for flexible configuration with YAML files and environment overrides.
"""

import logging
import os
from pathlib import Path
from typing import Any

from dynaconf import Dynaconf, Validator
from dynaconf.validator import ValidationError

from ..export.prometheus import GaugeDefinition
from ..monitoring.windows import DEFAULT_WINDOWS, WindowKind, parse_window_kind
from ..providers.base import ConfigurationError

logger = logging.getLogger(__name__)

# Get the project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"

DEFAULT_REGION = "us-east-1"
DEFAULT_PORT = 8080

DEFAULT_GAUGES = {
    WindowKind.CURRENT_DAY: GaugeDefinition("aws_daily_cost_usd", "Daily AWS cost in USD"),
    WindowKind.MONTH_TO_DATE: GaugeDefinition("aws_monthly_cost_usd", "Monthly AWS cost in USD"),
    WindowKind.PREVIOUS_DAY: GaugeDefinition(
        "aws_previous_day_cost_usd", "Previous day AWS cost in USD (stable metric)"
    ),
    WindowKind.PREVIOUS_MONTH: GaugeDefinition(
        "aws_previous_month_cost_usd", "Previous month AWS cost in USD (stable metric)"
    ),
}

VALIDATORS = [
    Validator("provider", default="aws"),
    Validator("cost_explorer.metric", default="UnblendedCost"),
    Validator("refresh.interval_seconds", default=21600, gte=1),
    Validator("refresh.fail_fast", default=True, is_type_of=bool),
    Validator("refresh.windows", default=[kind.value for kind in DEFAULT_WINDOWS]),
    Validator("server.host", default="0.0.0.0"),
    Validator("server.port", gte=1, lte=65535),
    Validator("metrics.include_process_metrics", default=True, is_type_of=bool),
    Validator("metrics.gauges", default={}),
]


def create_settings(settings_files: list[str] | None = None) -> Dynaconf:
    """
    Create a dynaconf settings object.

    Args:
        settings_files: YAML files to load, later files override earlier ones
    """
    if settings_files is None:
        settings_files = [
            str(CONFIG_DIR / "config.yaml"),  # Base configuration
            str(CONFIG_DIR / "config.local.yaml"),  # Local overrides (git-ignored)
            str(CONFIG_DIR / ".secrets.yaml"),  # Secrets file (git-ignored)
        ]

    return Dynaconf(
        envvar_prefix="COSTEXPORTER",
        settings_files=settings_files,
        environments=False,
        load_dotenv=True,
        merge_enabled=True,
        envvar_separator="__",  # Support nested config via COSTEXPORTER_AWS__REGION=eu-west-1
        validators=VALIDATORS,
    )


settings = create_settings()


class ExporterConfig:
    """Configuration wrapper for the cost exporter."""

    def __init__(self, settings_obj: Dynaconf | None = None):
        self.settings = settings_obj if settings_obj is not None else settings
        self._validate_config()
        self._region = self._resolve_region()

    def _validate_config(self):
        """Validate the configuration and apply defaults."""
        try:
            self.settings.validators.validate()
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        definitions = self.gauge_definitions
        logger.debug(f"Configured gauges: {[d.name for d in definitions.values()]}")

    @property
    def provider(self) -> str:
        return str(self.settings.get("provider", "aws"))

    @property
    def aws(self) -> dict[str, Any]:
        """AWS configuration settings as a plain dict."""
        aws_config = dict(self.settings.get("aws", {}) or {})
        aws_config["region"] = self.region
        return aws_config

    @property
    def region(self) -> str:
        """Region used for the billing query client."""
        return self._region

    def _resolve_region(self) -> str:
        region = self.settings.get("aws.region") or os.getenv("AWS_REGION")
        if not region:
            logger.info(f"AWS_REGION not set, using default region: {DEFAULT_REGION}")
            region = DEFAULT_REGION
        return region

    @property
    def cost_metric(self) -> str:
        return self.settings.get("cost_explorer.metric", "UnblendedCost")

    @property
    def refresh_interval(self) -> float:
        return float(self.settings.get("refresh.interval_seconds", 21600))

    @property
    def fail_fast(self) -> bool:
        return bool(self.settings.get("refresh.fail_fast", True))

    @property
    def window_kinds(self) -> list[WindowKind]:
        """Configured windows in refresh order."""
        names = self.settings.get("refresh.windows")
        if names is None:
            names = [kind.value for kind in DEFAULT_WINDOWS]

        kinds = []
        for name in names:
            try:
                kind = parse_window_kind(str(name))
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
            if kind in kinds:
                raise ConfigurationError(f"Window '{kind.value}' is configured more than once")
            kinds.append(kind)

        if not kinds:
            raise ConfigurationError("At least one refresh window must be configured")
        return kinds

    @property
    def gauge_definitions(self) -> dict[WindowKind, GaugeDefinition]:
        """Gauge name and help text per configured window."""
        overrides = self.settings.get("metrics.gauges", {}) or {}
        definitions = {}
        for kind in self.window_kinds:
            default = DEFAULT_GAUGES[kind]
            override = overrides.get(kind.value, {}) or {}
            definitions[kind] = GaugeDefinition(
                name=override.get("name", default.name),
                documentation=override.get("help", default.documentation),
            )

        names = [definition.name for definition in definitions.values()]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Gauge names must be unique, got {names}")
        return definitions

    @property
    def server_host(self) -> str:
        return self.settings.get("server.host", "0.0.0.0")

    @property
    def server_port(self) -> int:
        port = self.settings.get("server.port") or os.getenv("PORT") or DEFAULT_PORT
        return int(port)

    @property
    def include_process_metrics(self) -> bool:
        return bool(self.settings.get("metrics.include_process_metrics", True))

    def get_provider_config(self, provider: str | None = None) -> dict[str, Any]:
        """Get configuration for the billing data provider."""
        provider = (provider or self.provider).lower()
        if provider == "aws":
            return self.aws
        return dict(self.settings.get(provider, {}) or {})

    def override_from_cli(self, cli_args: dict[str, Any]):
        """Override configuration with CLI arguments."""
        cli_mapping = {
            "aws_region": "aws.region",
            "host": "server.host",
            "port": "server.port",
            "interval": "refresh.interval_seconds",
        }

        for cli_key, config_path in cli_mapping.items():
            if cli_args.get(cli_key) is not None:
                self.settings.set(config_path, cli_args[cli_key])

        # Re-validate after overrides
        self._validate_config()
        if cli_args.get("aws_region") is not None:
            self._region = self._resolve_region()

    def to_dict(self) -> dict[str, Any]:
        """Effective configuration without credentials."""
        return {
            "provider": self.provider,
            "region": self.region,
            "cost_metric": self.cost_metric,
            "refresh_interval": self.refresh_interval,
            "fail_fast": self.fail_fast,
            "windows": [kind.value for kind in self.window_kinds],
            "gauges": {
                kind.value: definition.name for kind, definition in self.gauge_definitions.items()
            },
            "server": {"host": self.server_host, "port": self.server_port},
            "include_process_metrics": self.include_process_metrics,
        }


# Global configuration instance, created on first use
config: ExporterConfig | None = None


def get_config() -> ExporterConfig:
    """Get the global configuration instance."""
    global config
    if config is None:
        config = ExporterConfig()
    return config


def load_config_file(path: str) -> ExporterConfig:
    """Merge an extra YAML file into the global settings."""
    global config
    settings.load_file(path=path)
    config = ExporterConfig()
    return config


def reload_config() -> ExporterConfig:
    """Reload configuration from files."""
    global config
    settings.reload()
    config = ExporterConfig()
    return config
