"""Runner configuration."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import Any

import httpx

if sys.version_info < (3, 11):
    import tomli as tomllib
else:
    import tomllib

DEFAULT_TIMEOUT = 30.0


class ConfigError(Exception):
    """Raised when the runner configuration is invalid."""


@dataclass(repr=False)
class RunnerConfig:
    """HTTP settings shared by every request of a run."""

    timeout: float
    verify_ssl: bool
    headers: dict[str, str]
    follow_redirects: bool

    __slots__ = ("timeout", "verify_ssl", "headers", "follow_redirects")

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        verify_ssl: bool = True,
        headers: dict[str, str] | None = None,
        follow_redirects: bool = True,
    ) -> None:
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.headers = headers or {}
        self.follow_redirects = follow_redirects

    def __repr__(self) -> str:
        return (
            f"RunnerConfig(timeout={self.timeout!r}, verify_ssl={self.verify_ssl!r}, "
            f"headers={sorted(self.headers)!r}, follow_redirects={self.follow_redirects!r})"
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RunnerConfig:
        timeout = data.get("timeout", DEFAULT_TIMEOUT)
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigError(f"Invalid timeout: {timeout!r}. Expected a positive number of seconds")
        headers = data.get("headers", {})
        if not isinstance(headers, dict) or not all(isinstance(value, str) for value in headers.values()):
            raise ConfigError("Invalid headers: expected a table of string values")
        return cls(
            timeout=float(timeout),
            verify_ssl=bool(data.get("verify_ssl", True)),
            headers=dict(headers),
            follow_redirects=bool(data.get("follow_redirects", True)),
        )

    @classmethod
    def from_str(cls, content: str) -> RunnerConfig:
        """Load from TOML text; settings live in the ``[runner]`` table."""
        try:
            data = tomllib.loads(content)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML: {exc}") from None
        return cls.from_dict(data.get("runner", {}))

    @classmethod
    def from_path(cls, path: PathLike | str) -> RunnerConfig:
        try:
            content = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Unable to read config file {path}: {exc}") from None
        return cls.from_str(content)

    def create_client(self) -> httpx.Client:
        return httpx.Client(
            headers=self.headers,
            timeout=self.timeout,
            verify=self.verify_ssl,
            follow_redirects=self.follow_redirects,
        )
