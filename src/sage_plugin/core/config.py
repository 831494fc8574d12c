"""
Sage Plugin Configuration — single source of truth for all settings.

Reads from environment variables with sensible defaults.
No config files, no YAML. Just env vars (and an optional .env).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    """Parse an integer env var, falling back to the default on bad input."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _env_flag(name: str, default: bool) -> bool:
    """Flags follow the sage convention: only "1" turns them on."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip() == "1"


@dataclass(frozen=True)
class SageConfig:
    """External sage tool + suggestion/feedback behaviour."""

    bin: str = "sage"
    suggest_limit: int = 3
    debounce_ms: int = 800
    provision: bool = True
    dry_run: bool = False
    feedback_enabled: bool = True
    correlation_window_ms: int = 30_000
    source: str = "opencode"
    feedback_source: str = "opencode-plugin"

    @classmethod
    def from_env(cls) -> SageConfig:
        return cls(
            bin=os.getenv("SAGE_BIN") or "sage",
            suggest_limit=_env_int("SAGE_SUGGEST_LIMIT", 3),
            debounce_ms=_env_int("SAGE_SUGGEST_DEBOUNCE_MS", 800),
            provision=_env_flag("SAGE_SUGGEST_PROVISION", True),
            dry_run=_env_flag("SAGE_PLUGIN_DRY_RUN", False),
            feedback_enabled=_env_flag("SAGE_RLM_FEEDBACK", True),
            correlation_window_ms=_env_int("SAGE_CORRELATION_WINDOW_MS", 30_000),
            source=os.getenv("SAGE_SOURCE") or "opencode",
        )

    @property
    def debounce_seconds(self) -> float:
        return max(self.debounce_ms, 0) / 1000.0

    @property
    def correlation_window_seconds(self) -> float:
        return self.correlation_window_ms / 1000.0


@dataclass(frozen=True)
class HostConfig:
    """How to reach the chat host (OpenCode server) that delivers events."""

    url: str = "http://127.0.0.1:4096"
    directory: str = field(default_factory=os.getcwd)
    timeout: float = 5.0
    service: str = "sage-plugin"

    @classmethod
    def from_env(cls) -> HostConfig:
        return cls(
            url=os.getenv("OPENCODE_SERVER_URL", "http://127.0.0.1:4096"),
            directory=os.getenv("SAGE_WORKSPACE") or os.getcwd(),
            timeout=_env_float("SAGE_HOST_TIMEOUT", 5.0),
        )


@dataclass(frozen=True)
class ServerConfig:
    """Sidecar HTTP server settings."""

    host: str = "127.0.0.1"
    port: int = 4097

    @classmethod
    def from_env(cls) -> ServerConfig:
        return cls(
            host=os.getenv("SAGE_PLUGIN_HOST", "127.0.0.1"),
            port=_env_int("SAGE_PLUGIN_PORT", 4097),
        )


@dataclass(frozen=True)
class PluginConfig:
    """Root configuration."""

    sage: SageConfig = field(default_factory=SageConfig)
    host: HostConfig = field(default_factory=HostConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @classmethod
    def from_env(cls) -> PluginConfig:
        return cls(
            sage=SageConfig.from_env(),
            host=HostConfig.from_env(),
            server=ServerConfig.from_env(),
        )


# Singleton: import this wherever you need config
config = PluginConfig.from_env()

