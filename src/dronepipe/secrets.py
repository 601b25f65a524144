# secrets.py
from __future__ import annotations

import os
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from . import settings
from .errors import SecretNotFound
from .model import SecretRef

MASK = "********"


class SecretProvider(Protocol):
    def get(self, name: str) -> Optional[str]:
        ...


class MappingSecrets:
    """Secrets passed explicitly, e.g. `--secret telegram_token=...`."""

    def __init__(self, values: Mapping[str, str] | None = None):
        self._values = dict(values or {})

    def get(self, name: str) -> Optional[str]:
        return self._values.get(name)

    @classmethod
    def from_pairs(cls, pairs: Iterable[str]) -> "MappingSecrets":
        values: Dict[str, str] = {}
        for pair in pairs:
            if "=" not in pair:
                raise ValueError(f"secret must be name=value, got {pair!r}")
            name, value = pair.split("=", 1)
            values[name.strip()] = value
        return cls(values)


class EnvSecrets:
    """
    Secrets read from the process environment.

    `telegram_token` is looked up as `<prefix>TELEGRAM_TOKEN`.
    """

    def __init__(self, prefix: str = settings.SECRET_PREFIX, environ: Mapping[str, str] | None = None):
        self.prefix = prefix
        self._environ = environ if environ is not None else os.environ

    def get(self, name: str) -> Optional[str]:
        return self._environ.get(f"{self.prefix}{name.upper()}")


class ChainSecrets:
    """First provider that knows the secret wins."""

    def __init__(self, *providers: SecretProvider):
        self.providers = list(providers)

    def get(self, name: str) -> Optional[str]:
        for p in self.providers:
            value = p.get(name)
            if value is not None:
                return value
        return None


def resolve_value(value: Any, provider: SecretProvider, used: Optional[List[str]] = None) -> Any:
    """
    Replace every SecretRef inside `value` with the secret's value.

    Resolved values are appended to `used` so callers can mask them.
    """
    if isinstance(value, SecretRef):
        secret = provider.get(value.name)
        if secret is None:
            raise SecretNotFound(value.name)
        if used is not None:
            used.append(secret)
        return secret
    if isinstance(value, dict):
        return {k: resolve_value(v, provider, used) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_value(v, provider, used) for v in value]
    return value


def resolve_environment(env: Mapping[str, Any], provider: SecretProvider, used: Optional[List[str]] = None) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for k, v in env.items():
        v = resolve_value(v, provider, used)
        if isinstance(v, bool):
            v = "true" if v else "false"
        out[k] = "" if v is None else str(v)
    return out


class Masker:
    """Replaces known secret values in text before it reaches the console."""

    def __init__(self, secrets: Iterable[str] = ()):
        self._secrets: set[str] = set()
        self.add(*secrets)

    def add(self, *secrets: str) -> None:
        # very short values would mask ordinary output
        self._secrets.update(s for s in secrets if s and len(s) >= 3)

    def __call__(self, text: str) -> str:
        # longest first so a secret containing another is masked whole
        for s in sorted(self._secrets, key=len, reverse=True):
            text = text.replace(s, MASK)
        return text
