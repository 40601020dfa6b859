"""
Configuration management for Banana Studio.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional
import yaml


GLOBAL_CONFIG_DIR = Path.home() / ".banana_studio"
GLOBAL_CONFIG_FILE = GLOBAL_CONFIG_DIR / "config.yaml"

BACKENDS = ("gemini", "pollinations")

# Environment variables checked for each backend's key, in order
CREDENTIAL_ENV_VARS = {
    "gemini": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    "pollinations": ("POLLINATIONS_API_KEY",),
}


def env_credential(*names: str, fallback: str = "") -> Callable[[], Optional[str]]:
    """Return a callable that looks the credential up when it is called.

    The first non-empty environment variable among ``names`` wins;
    ``fallback`` (usually the value from the config file) is used otherwise.
    """
    def lookup() -> Optional[str]:
        for name in names:
            value = os.getenv(name, "").strip()
            if value:
                return value
        return fallback or None

    return lookup


@dataclass
class APIKeys:
    """API key configuration."""

    google: str = ""
    pollinations: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "APIKeys":
        return cls(
            google=data.get("google", ""),
            pollinations=data.get("pollinations", ""),
        )

    @classmethod
    def from_env(cls) -> "APIKeys":
        """Load API keys from environment variables."""
        return cls(
            google=os.getenv("GEMINI_API_KEY", "") or os.getenv("GOOGLE_API_KEY", ""),
            pollinations=os.getenv("POLLINATIONS_API_KEY", ""),
        )

    def merge_env(self) -> "APIKeys":
        """Merge with environment variables (env takes precedence)."""
        env_keys = APIKeys.from_env()
        return APIKeys(
            google=env_keys.google or self.google,
            pollinations=env_keys.pollinations or self.pollinations,
        )

    def for_backend(self, backend: str) -> str:
        return self.google if backend == "gemini" else self.pollinations


@dataclass
class Defaults:
    """Default settings."""

    backend: str = "gemini"  # "gemini" or "pollinations"
    gemini_model: str = "gemini-2.5-flash-image"
    pollinations_endpoint: str = "https://api.pollinations.ai/generate"
    max_attempts: int = 4
    backoff_base: float = 0.8  # seconds before the first retry
    timeout: float = 120.0  # per-request socket timeout, seconds
    output_dir: str = "."

    @classmethod
    def from_dict(cls, data: dict) -> "Defaults":
        return cls(
            backend=data.get("backend", "gemini"),
            gemini_model=data.get("gemini_model", "gemini-2.5-flash-image"),
            pollinations_endpoint=data.get("pollinations_endpoint", "https://api.pollinations.ai/generate"),
            max_attempts=int(data.get("max_attempts", 4)),
            backoff_base=float(data.get("backoff_base", 0.8)),
            timeout=float(data.get("timeout", 120.0)),
            output_dir=data.get("output_dir", "."),
        )

    def merge_env(self) -> "Defaults":
        """Apply environment overrides for the backend and endpoint."""
        return Defaults(
            backend=os.getenv("BANANA_BACKEND", "") or self.backend,
            gemini_model=self.gemini_model,
            pollinations_endpoint=os.getenv("POLLINATIONS_ENDPOINT", "") or self.pollinations_endpoint,
            max_attempts=self.max_attempts,
            backoff_base=self.backoff_base,
            timeout=self.timeout,
            output_dir=self.output_dir,
        )


@dataclass
class Config:
    """Complete configuration."""

    api_keys: APIKeys = field(default_factory=APIKeys)
    defaults: Defaults = field(default_factory=Defaults)

    @classmethod
    def load(cls, config_path: Optional[Path] = None, merge_env: bool = True) -> "Config":
        """Load configuration from file and, unless merge_env is False, environment."""
        config_path = config_path or GLOBAL_CONFIG_FILE

        # Start with defaults
        config = cls()

        # Load from file if exists
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
                config.api_keys = APIKeys.from_dict(data.get("api_keys", {}))
                config.defaults = Defaults.from_dict(data.get("defaults", {}))

        # Merge environment variables (they take precedence)
        if merge_env:
            config.api_keys = config.api_keys.merge_env()
            config.defaults = config.defaults.merge_env()

        return config

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to file."""
        config_path = config_path or GLOBAL_CONFIG_FILE
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "api_keys": {
                "google": self.api_keys.google,
                "pollinations": self.api_keys.pollinations,
            },
            "defaults": {
                "backend": self.defaults.backend,
                "gemini_model": self.defaults.gemini_model,
                "pollinations_endpoint": self.defaults.pollinations_endpoint,
                "max_attempts": self.defaults.max_attempts,
                "backoff_base": self.defaults.backoff_base,
                "timeout": self.defaults.timeout,
                "output_dir": self.defaults.output_dir,
            },
        }

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False)

    def credential_source(self, backend: str) -> Callable[[], Optional[str]]:
        """Credential lookup for a backend, re-read from the environment on each call."""
        return env_credential(
            *CREDENTIAL_ENV_VARS.get(backend, ()),
            fallback=self.api_keys.for_backend(backend),
        )

    def validate(self, backend: Optional[str] = None) -> list[str]:
        """Validate configuration and return list of issues."""
        issues = []
        backend = backend or self.defaults.backend

        if backend not in BACKENDS:
            issues.append(f"Unknown backend '{backend}' (expected one of: {', '.join(BACKENDS)})")
        elif backend == "gemini" and not self.api_keys.google:
            issues.append("Gemini API key not configured (GEMINI_API_KEY or GOOGLE_API_KEY)")
        elif backend == "pollinations" and not self.api_keys.pollinations:
            issues.append("Pollinations API key not configured (POLLINATIONS_API_KEY)")

        if self.defaults.max_attempts < 1:
            issues.append("max_attempts must be at least 1")

        return issues
