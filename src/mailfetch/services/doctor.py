from __future__ import annotations

import platform
import sys
from collections.abc import Callable

from mailfetch.config import ServerConfig, Settings
from mailfetch.errors import MailFetchError
from mailfetch.mailbox import Server


def run_doctor_checks(
    settings: Settings,
    server_factory: Callable[[ServerConfig], Server] = Server.from_config,
) -> list[dict[str, str]]:
    checks: list[dict[str, str]] = []

    checks.append(
        {
            "check": "python_version",
            "status": "ok" if sys.version_info >= (3, 10) else "warn",
            "detail": platform.python_version(),
        }
    )

    for name, path in (("logs_dir", settings.logs_dir), ("download_dir", settings.download_dir)):
        checks.append(
            {
                "check": name,
                "status": "ok" if path.is_dir() else "warn",
                "detail": str(path),
            }
        )

    config = settings.server
    if config is None:
        checks.append(
            {
                "check": "server",
                "status": "warn",
                "detail": "Mail server is not configured",
            }
        )
        return checks

    checks.append(
        {
            "check": "server",
            "status": "ok",
            "detail": f"{config.username}@{config.host}:{config.port} ({config.service})",
        }
    )

    server = server_factory(config)
    try:
        count = server.num_messages()
        checks.append(
            {
                "check": "connection",
                "status": "ok",
                "detail": f"{server.server_string}: {count} messages",
            }
        )
    except MailFetchError as exc:
        checks.append(
            {
                "check": "connection",
                "status": "warn",
                "detail": f"{exc.__class__.__name__}: {exc}",
            }
        )
    finally:
        server.close()

    return checks
