from __future__ import annotations

import poplib
import ssl
from email.message import Message
from typing import Any

from mailfetch.errors import TransportError, UnsupportedService
from mailfetch.sources.models import BodyPartDescriptor, ConnectionSpec, OverviewRecord
from mailfetch.sources.rfc822 import (
    describe_message,
    extract_part,
    header_block,
    overview_from_message,
    parse_message,
)

POP3_ERRORS = (poplib.error_proto, OSError)


class Pop3EmailSource:
    """POP3 variant of the mail transport.

    POP3 has neither folders, flags nor server-side structure, so message
    numbers stand in for UIDs and the structure is derived locally from the
    retrieved message.
    """

    def __init__(self, connection: poplib.POP3):
        self.connection = connection
        self._messages: dict[int, tuple[bytes, Message]] = {}

    @classmethod
    def open(cls, spec: ConnectionSpec) -> Pop3EmailSource:
        port = spec.port or (995 if spec.has_flag("ssl") else 110)
        kwargs: dict[str, Any] = {}
        if spec.timeout is not None:
            kwargs["timeout"] = spec.timeout

        context = ssl.create_default_context()
        if spec.has_flag("novalidate-cert"):
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        try:
            if spec.has_flag("ssl"):
                connection = poplib.POP3_SSL(spec.host, port, context=context, **kwargs)
            else:
                connection = poplib.POP3(spec.host, port, **kwargs)
                if spec.has_flag("tls"):
                    connection.stls(context=context)
            connection.user(spec.username or "")
            connection.pass_(spec.password or "")
        except POP3_ERRORS as exc:
            raise TransportError(f"POP3 connection to {spec.host}:{port} failed: {exc}") from exc

        source = cls(connection)
        source.select(spec.mailbox)
        return source

    def _retrieve(self, uid: int) -> tuple[bytes, Message]:
        if uid not in self._messages:
            try:
                _, lines, _ = self.connection.retr(uid)
            except POP3_ERRORS as exc:
                raise TransportError(f"RETR {uid} failed: {exc}") from exc
            raw_message = b"\r\n".join(lines) + b"\r\n"
            self._messages[uid] = (raw_message, parse_message(raw_message))
        return self._messages[uid]

    def select(self, mailbox: str) -> None:
        if mailbox and mailbox.upper() != "INBOX":
            raise UnsupportedService(f"POP3 only provides INBOX, not {mailbox!r}")

    def close(self) -> None:
        try:
            self.connection.quit()
        except POP3_ERRORS as exc:
            raise TransportError(f"QUIT failed: {exc}") from exc
        finally:
            self._messages.clear()

    def fetch_overview(self, uid: int) -> OverviewRecord:
        raw_message, _ = self._retrieve(uid)
        return overview_from_message(uid, raw_message)

    def fetch_header_block(self, uid: int) -> bytes:
        raw_message, _ = self._retrieve(uid)
        return header_block(raw_message)

    def fetch_structure(self, uid: int) -> BodyPartDescriptor:
        _, message = self._retrieve(uid)
        return describe_message(message)

    def fetch_body(self, uid: int, part: str | None = None) -> bytes:
        _, message = self._retrieve(uid)
        try:
            return extract_part(message, part)
        except (KeyError, ValueError) as exc:
            raise TransportError(f"Message {uid} has no part {part}") from exc

    def search(self, criteria: str = "ALL") -> list[int]:
        if criteria.strip().upper() != "ALL":
            raise UnsupportedService("POP3 cannot search, only ALL is available")
        return list(range(1, self.num_messages() + 1))

    def num_messages(self) -> int:
        try:
            count, _ = self.connection.stat()
        except POP3_ERRORS as exc:
            raise TransportError(f"STAT failed: {exc}") from exc
        return count

    def uid_for_sequence(self, sequence: int) -> int:
        return sequence

    def set_flag(self, uid: int, flag: str) -> None:
        raise UnsupportedService("POP3 does not support message flags")

    def clear_flag(self, uid: int, flag: str) -> None:
        raise UnsupportedService("POP3 does not support message flags")

    def delete(self, uid: int) -> None:
        try:
            self.connection.dele(uid)
        except POP3_ERRORS as exc:
            raise TransportError(f"DELE {uid} failed: {exc}") from exc
        self._messages.pop(uid, None)

    def move(self, uid: int, mailbox: str) -> None:
        raise UnsupportedService("POP3 does not support folders")

    def expunge(self) -> None:
        # deletions are committed by QUIT
        return None

    def has_mailbox(self, mailbox: str) -> bool:
        return mailbox.upper() == "INBOX"

    def create_mailbox(self, mailbox: str) -> None:
        raise UnsupportedService("POP3 does not support folders")
