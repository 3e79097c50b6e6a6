from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional, Protocol


PROVIDERS = ("gemini", "ollama")


class CredentialProvider(Protocol):
    def get_credential(self) -> str:
        ...


class EnvCredentialProvider:
    """Reads the key from the environment on every call so rotation is picked up."""

    def __init__(self, variable: str = "GEMINI_API_KEY") -> None:
        self.variable = variable

    def get_credential(self) -> str:
        return os.getenv(self.variable, "").strip()

    def __repr__(self) -> str:
        return f"EnvCredentialProvider({self.variable!r})"


class StaticCredentialProvider:
    def __init__(self, value: str) -> None:
        self._value = value

    def get_credential(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return "StaticCredentialProvider(***)"


@dataclass(frozen=True)
class Settings:
    provider: str = "gemini"
    gemini_model: str = "gemini-2.0-flash"
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_key_variable: str = "GEMINI_API_KEY"
    ollama_model: str = "gpt-oss:20b"
    ollama_host: str = "http://localhost:11434"
    timeout: float = 45.0
    duplicate_policy: str = "reject"
    pg_dsn: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()
        provider = env.get("ABILITY_CHAT_PROVIDER", defaults.provider).strip().lower()
        if provider not in PROVIDERS:
            raise ValueError(f"ABILITY_CHAT_PROVIDER must be one of {PROVIDERS}, got '{provider}'")
        try:
            timeout = float(env.get("ABILITY_CHAT_TIMEOUT", defaults.timeout))
        except ValueError as exc:
            raise ValueError("ABILITY_CHAT_TIMEOUT must be a number of seconds") from exc
        if timeout <= 0:
            raise ValueError("ABILITY_CHAT_TIMEOUT must be positive")
        return cls(
            provider=provider,
            gemini_model=env.get("GEMINI_MODEL", defaults.gemini_model),
            gemini_api_base=env.get("GEMINI_API_BASE", defaults.gemini_api_base),
            ollama_model=env.get("OLLAMA_MODEL", defaults.ollama_model),
            ollama_host=env.get("OLLAMA_HOST", defaults.ollama_host),
            timeout=timeout,
            duplicate_policy=env.get("ABILITY_CHAT_DUPLICATES", defaults.duplicate_policy),
            pg_dsn=env.get("PG_DSN") or None,
        )

    def with_overrides(self, **overrides: Any) -> "Settings":
        """Apply CLI-style overrides, ignoring the ones left unset."""
        return replace(self, **{key: value for key, value in overrides.items() if value is not None})

    def credentials(self) -> CredentialProvider:
        return EnvCredentialProvider(self.gemini_key_variable)


__all__ = [
    "CredentialProvider",
    "EnvCredentialProvider",
    "PROVIDERS",
    "Settings",
    "StaticCredentialProvider",
]
