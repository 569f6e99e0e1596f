"""
Settings Loader

Loads and parses the scanner settings file, merging defaults with the
configured values. Router credentials may be overridden from the
environment (ROUTEROS_USERNAME / ROUTEROS_PASSWORD).
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from subnet import MAX_SCAN_ADDRESSES

logger = logging.getLogger(__name__)

ENV_USERNAME = "ROUTEROS_USERNAME"
ENV_PASSWORD = "ROUTEROS_PASSWORD"


class SettingsError(Exception):
    """Exception raised for settings loading errors."""
    pass


@dataclass
class Credentials:
    """Router login used by the probe."""
    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


class StaticCredentials:
    """Credential provider returning a fixed username/password pair."""

    def __init__(self, username: str, password: str):
        self._credentials = Credentials(username=username, password=password)

    def get_credentials(self) -> Credentials:
        return Credentials(self._credentials.username, self._credentials.password)


@dataclass
class TunnelSettings:
    enabled: bool = False
    host: str = ""
    port: int = 22
    username: str = ""
    password: Optional[str] = None
    key_file: Optional[str] = None


@dataclass
class ScanSettings:
    port: int = 22
    timeout: float = 5
    max_addresses: int = MAX_SCAN_ADDRESSES


@dataclass
class AsymmetrySettings:
    medium_threshold: int = 20
    high_threshold: int = 50


@dataclass
class Settings:
    """Fully merged scanner settings."""
    username: str = "admin"
    password: str = ""
    tunnel: TunnelSettings = field(default_factory=TunnelSettings)
    scan: ScanSettings = field(default_factory=ScanSettings)
    asymmetry: AsymmetrySettings = field(default_factory=AsymmetrySettings)
    default_subnets: List[str] = field(default_factory=list)

    def credentials(self) -> StaticCredentials:
        return StaticCredentials(self.username, self.password)


def load_settings(path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> Settings:
    """
    Load and parse the settings file.

    Args:
        path: Path to the settings YAML file, or None for defaults only
        environ: Environment mapping for credential overrides (default: os.environ)

    Returns:
        Merged Settings

    Raises:
        SettingsError: If the file cannot be loaded or holds invalid values
    """
    data: Dict[str, Any] = {}

    if path:
        path = os.path.expanduser(path)

        if not os.path.isfile(path):
            raise SettingsError(f"Settings file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise SettingsError(f"Failed to parse settings file: {e}")
        except IOError as e:
            raise SettingsError(f"Failed to read settings file: {e}")

        if not isinstance(data, dict):
            raise SettingsError("Settings file must contain a mapping")

    settings = _process_settings(data)

    env = os.environ if environ is None else environ
    if env.get(ENV_USERNAME):
        settings.username = env[ENV_USERNAME]
    if env.get(ENV_PASSWORD):
        settings.password = env[ENV_PASSWORD]

    return settings


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise SettingsError(f"Section '{name}' must be a mapping")
    return value


def _number(section: Dict[str, Any], key: str, default, cast=int):
    value = section.get(key, default)
    if isinstance(value, bool):
        raise SettingsError(f"Invalid value for {key}: {value!r}")
    try:
        value = cast(value)
    except (TypeError, ValueError):
        raise SettingsError(f"Invalid value for {key}: {value!r}")
    if value <= 0:
        raise SettingsError(f"{key} must be positive, got {value}")
    return value


def _process_settings(data: Dict[str, Any]) -> Settings:
    """
    Process raw settings data, merging defaults with configured values.

    Args:
        data: Raw parsed YAML data

    Returns:
        Merged Settings
    """
    credentials = _section(data, "credentials")
    tunnel = _section(data, "tunnel")
    scan = _section(data, "scan")
    asymmetry = _section(data, "asymmetry")

    tunnel_settings = TunnelSettings(
        enabled=bool(tunnel.get("enabled", False)),
        host=str(tunnel.get("host") or ""),
        port=_number(tunnel, "port", 22),
        username=str(tunnel.get("username") or ""),
        password=tunnel.get("password"),
        key_file=tunnel.get("key_file"),
    )
    if tunnel_settings.enabled:
        if not tunnel_settings.host:
            raise SettingsError("Tunnel is enabled but no tunnel host is set")
        if not tunnel_settings.username:
            raise SettingsError("Tunnel is enabled but no tunnel username is set")

    scan_settings = ScanSettings(
        port=_number(scan, "port", 22),
        timeout=_number(scan, "timeout", 5, cast=float),
        max_addresses=_number(scan, "max_addresses", MAX_SCAN_ADDRESSES),
    )
    if scan_settings.max_addresses > MAX_SCAN_ADDRESSES:
        raise SettingsError(
            f"scan.max_addresses may only lower the limit of {MAX_SCAN_ADDRESSES}, "
            f"got {scan_settings.max_addresses}"
        )

    asymmetry_settings = AsymmetrySettings(
        medium_threshold=_number(asymmetry, "medium_threshold", 20),
        high_threshold=_number(asymmetry, "high_threshold", 50),
    )
    if asymmetry_settings.medium_threshold >= asymmetry_settings.high_threshold:
        raise SettingsError("medium_threshold must be lower than high_threshold")

    subnets = data.get("default_subnets") or []
    if not isinstance(subnets, list):
        raise SettingsError("default_subnets must be a list")

    settings = Settings(
        username=str(credentials.get("username") or "admin"),
        password=str(credentials.get("password") or ""),
        tunnel=tunnel_settings,
        scan=scan_settings,
        asymmetry=asymmetry_settings,
        default_subnets=[str(s) for s in subnets],
    )

    logger.debug(
        f"Loaded settings: user={settings.username}, tunnel={'on' if tunnel_settings.enabled else 'off'}, "
        f"{len(settings.default_subnets)} default subnets"
    )
    return settings
