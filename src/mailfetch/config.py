from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from mailfetch.errors import ConfigError

SERVICES = ("imap", "pop3", "nntp")
TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(slots=True)
class ServerConfig:
    host: str
    port: int = 143
    service: str = "imap"
    username: str | None = None
    password: str | None = None
    mailbox: str = "INBOX"
    ssl_enable: bool = True
    flags: list[str] = field(default_factory=list)
    timeout: float | None = None


@dataclass(slots=True)
class Settings:
    root_dir: Path
    logs_dir: Path
    download_dir: Path
    server: ServerConfig | None = None
    search_limit: int = 50

    @classmethod
    def load(cls, base_dir: Path | None = None) -> Settings:
        load_dotenv(override=False)
        root_env = os.getenv("MAILFETCH_HOME")
        root_dir = Path(root_env).expanduser().resolve() if root_env else (base_dir or Path.cwd()).resolve()

        logs_dir = Path(os.getenv("MAILFETCH_LOG_DIR", root_dir / "logs")).expanduser().resolve()
        download_dir = Path(os.getenv("MAILFETCH_DOWNLOAD_DIR", root_dir / "downloads")).expanduser().resolve()
        search_limit = _int_env("MAILFETCH_SEARCH_LIMIT", 50)

        return cls(
            root_dir=root_dir,
            logs_dir=logs_dir,
            download_dir=download_dir,
            server=cls._load_server(),
            search_limit=search_limit,
        )

    @staticmethod
    def _load_server() -> ServerConfig | None:
        """
        Reads MAILFETCH_IMAP_* keys. Host and user are required, everything
        else has a default. MAILFETCH_IMAP_FLAGS is comma separated, for
        example ``readonly,tls``.
        """
        host = os.getenv("MAILFETCH_IMAP_HOST")
        user = os.getenv("MAILFETCH_IMAP_USER")
        if not host or not user:
            return None

        service = os.getenv("MAILFETCH_IMAP_SERVICE", "imap").strip().lower()
        if service not in SERVICES:
            raise ConfigError(f"MAILFETCH_IMAP_SERVICE must be one of {', '.join(SERVICES)}, got {service!r}")

        flags_env = os.getenv("MAILFETCH_IMAP_FLAGS", "")
        timeout_env = os.getenv("MAILFETCH_IMAP_TIMEOUT")
        try:
            timeout = float(timeout_env) if timeout_env else None
        except ValueError as exc:
            raise ConfigError(f"MAILFETCH_IMAP_TIMEOUT is not a number: {timeout_env!r}") from exc

        return ServerConfig(
            host=host,
            port=_int_env("MAILFETCH_IMAP_PORT", 143),
            service=service,
            username=user,
            password=os.getenv("MAILFETCH_IMAP_PASSWORD"),
            mailbox=os.getenv("MAILFETCH_IMAP_MAILBOX", "INBOX"),
            ssl_enable=_bool_env("MAILFETCH_IMAP_SSL", True),
            flags=[flag.strip() for flag in flags_env.split(",") if flag.strip()],
            timeout=timeout,
        )

    def require_server(self) -> ServerConfig:
        if self.server is None:
            raise ConfigError("Mail server is not configured: set MAILFETCH_IMAP_HOST and MAILFETCH_IMAP_USER")
        return self.server

    def ensure_directories(self) -> None:
        for path in [self.root_dir, self.logs_dir, self.download_dir]:
            path.mkdir(parents=True, exist_ok=True)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} is not an integer: {raw!r}") from exc


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")
