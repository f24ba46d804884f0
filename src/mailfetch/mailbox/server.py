from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from mailfetch.errors import ConfigError, TransportError
from mailfetch.sources import ConnectionSpec, MailTransport, open_transport

from .message import Message

if TYPE_CHECKING:
    from mailfetch.config import ServerConfig

DEFAULT_MAILBOX = "INBOX"

SSL_FLAGS = ("ssl", "validate-cert", "novalidate-cert", "tls", "notls")
EXCLUSIVE_FLAGS = {
    "validate-cert": "novalidate-cert",
    "novalidate-cert": "validate-cert",
    "tls": "notls",
    "notls": "tls",
}

TransportFactory = Callable[[ConnectionSpec], MailTransport]


class Server:
    """Connection settings for one mail server plus a lazily opened transport.

    Messages created from a server share its transport; the transport is
    opened on first use and reused until :meth:`close`.
    """

    def __init__(
        self,
        host: str,
        port: int | None = 143,
        service: str = "imap",
        *,
        ssl_enable: bool = True,
        transport_factory: TransportFactory | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self.server_path = host
        self.port = port
        self.service = service
        self.ssl_enable = ssl_enable
        self.flags: list[str] = []
        self.username: str | None = None
        self.password: str | None = None
        self._mailbox = ""
        self.options = 0
        self.timeout: float | None = None
        self.logger = logger or logging.getLogger("mailfetch")
        self._transport_factory = transport_factory or open_transport
        self._transport: MailTransport | None = None

        if port == 143:
            self.set_flag("novalidate-cert")
        elif port == 993:
            self.set_flag("ssl")

    @classmethod
    def from_config(
        cls,
        config: ServerConfig,
        *,
        transport_factory: TransportFactory | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> Server:
        server = cls(
            config.host,
            config.port,
            config.service,
            ssl_enable=config.ssl_enable,
            transport_factory=transport_factory,
            logger=logger,
        )
        if config.username:
            server.set_authentication(config.username, config.password or "")
        server.set_mailbox(config.mailbox)
        for flag in config.flags:
            name, sep, value = flag.partition("=")
            server.set_flag(name, value if sep else None)
        server.timeout = config.timeout
        return server

    def __enter__(self) -> Server:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def set_authentication(self, username: str, password: str) -> None:
        self.username = username
        self.password = password

    @property
    def mailbox(self) -> str:
        return self._mailbox

    def set_mailbox(self, mailbox: str = "") -> None:
        self._mailbox = mailbox
        if self._transport is not None:
            self.logger.debug("Selecting mailbox %s", mailbox or DEFAULT_MAILBOX)
            self._transport.select(mailbox or DEFAULT_MAILBOX)

    def get_mailbox(self) -> str:
        return self._mailbox

    def set_options(self, bitmask: int = 0) -> None:
        if isinstance(bitmask, bool) or not isinstance(bitmask, int):
            raise ConfigError(f"Function requires numeric argument: {bitmask!r}")
        self.options = bitmask

    def _remove_flag(self, name: str) -> None:
        self.flags = [flag for flag in self.flags if flag != name and not flag.startswith(name + "=")]

    def set_flag(self, flag: str, value: Any = None) -> None:
        if not self.ssl_enable and flag in SSL_FLAGS:
            return

        counterpart = EXCLUSIVE_FLAGS.get(flag)
        if counterpart is not None:
            self._remove_flag(counterpart)

        if value is None or value is True:
            if flag not in self.flags:
                self.flags.append(flag)
        elif not value:
            self._remove_flag(flag)
        else:
            self._remove_flag(flag)
            self.flags.append(f"{flag}={value}")

    @property
    def server_specification(self) -> str:
        spec = "{" + self.server_path
        if self.port:
            spec += f":{self.port}"
        if self.service != "imap":
            spec += f"/{self.service}"
        for flag in self.flags:
            spec += f"/{flag}"
        return spec + "}"

    @property
    def server_string(self) -> str:
        return self.server_specification + (self._mailbox or "")

    def connection_spec(self) -> ConnectionSpec:
        return ConnectionSpec(
            host=self.server_path,
            port=self.port,
            service=self.service,
            username=self.username,
            password=self.password,
            mailbox=self._mailbox or DEFAULT_MAILBOX,
            flags=tuple(self.flags),
            options=self.options,
            timeout=self.timeout,
        )

    def get_transport(self) -> MailTransport:
        if self._transport is None:
            self.logger.debug("Opening %s", self.server_string)
            self._transport = self._transport_factory(self.connection_spec())
        return self._transport

    def close(self) -> None:
        if self._transport is None:
            return
        transport, self._transport = self._transport, None
        try:
            transport.close()
        except TransportError as exc:
            self.logger.info("Error while closing %s: %s", self.server_specification, exc)

    def _messages(self, uids: list[int]) -> list[Message]:
        return [Message(uid, self) for uid in uids]

    def search(self, criteria: str = "ALL", limit: int | None = None) -> list[Message]:
        uids = self.get_transport().search(criteria)
        self.logger.debug("Search %r matched %s messages", criteria, len(uids))
        if limit is not None:
            uids = uids[:limit]
        return self._messages(uids)

    def get_recent_messages(self, limit: int | None = None) -> list[Message]:
        return self.search("RECENT", limit)

    def get_messages(self, limit: int | None = None) -> list[Message]:
        count = self.num_messages()
        if limit is not None and limit < count:
            count = limit
        if count < 1:
            return []
        transport = self.get_transport()
        return self._messages([transport.uid_for_sequence(sequence) for sequence in range(1, count + 1)])

    def num_messages(self) -> int:
        return self.get_transport().num_messages()

    def expunge(self) -> None:
        self.get_transport().expunge()

    def has_mailbox(self, mailbox: str) -> bool:
        return self.get_transport().has_mailbox(mailbox)

    def create_mailbox(self, mailbox: str) -> None:
        self.get_transport().create_mailbox(mailbox)
