"""App configuration loading helpers."""

from __future__ import annotations

from pathlib import Path

import tomllib

from pydantic import BaseModel, Field, ValidationError

from .models import EndpointKind

CONFIG_DIR = Path.home() / ".config" / "vcflink"
CONFIG_FILE = CONFIG_DIR / "config.toml"

DEFAULT_MINIMUM_TTL_MINUTES = 30.0
DEFAULT_MAX_CONNECT_ATTEMPTS = 3


class EndpointConfig(BaseModel):
    """Per-endpoint settings stored in config.toml."""

    credentials_file: Path
    port: int = 443
    minimum_version: str | None = None


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    log_level: str = "INFO"
    log_file: Path | None = CONFIG_DIR / "vcflink.log"
    minimum_ttl_minutes: float = DEFAULT_MINIMUM_TTL_MINUTES
    max_connect_attempts: int = Field(default=DEFAULT_MAX_CONNECT_ATTEMPTS, ge=1)
    interactive: bool = True
    verify_ssl: bool = True
    controller: EndpointConfig = Field(
        default_factory=lambda: EndpointConfig(credentials_file=CONFIG_DIR / "sddc-manager.json")
    )
    server: EndpointConfig = Field(
        default_factory=lambda: EndpointConfig(credentials_file=CONFIG_DIR / "vcenter.json")
    )

    def endpoint(self, kind: EndpointKind) -> EndpointConfig:
        """Settings for the given endpoint kind."""

        if kind is EndpointKind.CONTROLLER:
            return self.controller
        return self.server

    def with_interactive(self, interactive: bool) -> AppConfig:
        """Return a copy with interactive prompting toggled."""

        return self.model_copy(update={"interactive": interactive})

    def with_log_level(self, level: str) -> AppConfig:
        return self.model_copy(update={"log_level": level})


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file(path or CONFIG_FILE)
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return AppConfig()
    try:
        return AppConfig(**data)
    except ValidationError:
        return AppConfig()


def save_config(config: AppConfig, path: Path | None = None) -> None:
    """Persist configuration to disk."""

    target = path or CONFIG_FILE
    target.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = [
        f'log_level = "{config.log_level}"',
        f"minimum_ttl_minutes = {config.minimum_ttl_minutes}",
        f"max_connect_attempts = {config.max_connect_attempts}",
        f"interactive = {str(config.interactive).lower()}",
        f"verify_ssl = {str(config.verify_ssl).lower()}",
    ]
    if config.log_file is not None:
        lines.append(f'log_file = "{config.log_file.as_posix()}"')
    for kind in EndpointKind:
        endpoint = config.endpoint(kind)
        lines.append("")
        lines.append(f"[endpoints.{kind.value}]")
        lines.append(f'credentials_file = "{endpoint.credentials_file.as_posix()}"')
        lines.append(f"port = {endpoint.port}")
        if endpoint.minimum_version:
            lines.append(f'minimum_version = "{endpoint.minimum_version}"')
    target.write_text("\n".join(lines) + "\n")


def _read_config_file(path: Path) -> dict[str, object]:
    with path.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    if not isinstance(raw, dict):
        return data
    log_level = raw.get("log_level")
    if isinstance(log_level, str):
        data["log_level"] = log_level
    log_file = raw.get("log_file")
    if isinstance(log_file, str):
        data["log_file"] = Path(log_file).expanduser() if log_file else None
    ttl = raw.get("minimum_ttl_minutes")
    if isinstance(ttl, (int, float)) and not isinstance(ttl, bool):
        data["minimum_ttl_minutes"] = float(ttl)
    attempts = raw.get("max_connect_attempts")
    if isinstance(attempts, int) and not isinstance(attempts, bool):
        data["max_connect_attempts"] = attempts
    for key in ("interactive", "verify_ssl"):
        value = raw.get(key)
        if isinstance(value, bool):
            data[key] = value
    endpoints = raw.get("endpoints")
    if isinstance(endpoints, dict):
        for kind in EndpointKind:
            section = endpoints.get(kind.value)
            if not isinstance(section, dict):
                continue
            parsed: dict[str, object] = {}
            credentials_file = section.get("credentials_file")
            if isinstance(credentials_file, str) and credentials_file:
                parsed["credentials_file"] = Path(credentials_file).expanduser()
            port = section.get("port")
            if isinstance(port, int) and not isinstance(port, bool):
                parsed["port"] = port
            minimum_version = section.get("minimum_version")
            if isinstance(minimum_version, str):
                parsed["minimum_version"] = minimum_version
            if parsed:
                data[kind.value] = AppConfig().endpoint(kind).model_copy(update=parsed)
    return data


__all__ = ["AppConfig", "CONFIG_FILE", "EndpointConfig", "load_config", "save_config"]
