from __future__ import annotations

import logging
from email.message import Message as EmailMessage
from pathlib import Path

import pytest

from mailfetch.config import Settings
from mailfetch.errors import TransportError
from mailfetch.mailbox import Server
from mailfetch.sources.models import BodyPartDescriptor, OverviewRecord
from mailfetch.sources.rfc822 import describe_message, extract_part, header_block, overview_from_message, parse_message

SIMPLE_MESSAGE = (
    b"From: Alice Example <alice@example.com>\r\n"
    b"To: Bob <bob@example.com>, carol@example.org\r\n"
    b"Subject: =?UTF-8?B?SMOpbGxv?= world\r\n"
    b"Date: Tue, 1 Jan 2019 00:00:00 +0000\r\n"
    b"MIME-Version: 1.0\r\n"
    b"Content-Type: text/plain; charset=utf-8\r\n"
    b"Content-Transfer-Encoding: quoted-printable\r\n"
    b"\r\n"
    b"  Caf=C3=A9 au lait  \r\n"
)

MIXED_MESSAGE = (
    b"From: =?ISO-8859-1?Q?Andr=E9?= <andre@example.com>\r\n"
    b"To: bob@example.com\r\n"
    b"Cc: Carol <carol@example.org>\r\n"
    b"Reply-To: replies@example.com\r\n"
    b"Subject: Report\r\n"
    b"Date: Wed, 02 Jan 2019 10:30:00 +0100\r\n"
    b"MIME-Version: 1.0\r\n"
    b'Content-Type: multipart/mixed; boundary="outer"\r\n'
    b"\r\n"
    b"--outer\r\n"
    b"Content-Type: text/plain; charset=iso-8859-1\r\n"
    b"Content-Transfer-Encoding: 8bit\r\n"
    b"\r\n"
    b"Voil\xe0 the report\r\n"
    b"--outer\r\n"
    b"Content-Type: text/html; charset=utf-8\r\n"
    b"\r\n"
    b"<p>See <b>attached</b></p>\r\n"
    b"--outer\r\n"
    b'Content-Type: application/pdf; name="report.pdf"\r\n'
    b'Content-Disposition: attachment; filename="report.pdf"\r\n'
    b"Content-Transfer-Encoding: base64\r\n"
    b"\r\n"
    b"JVBERi0xLjQK\r\n"
    b"--outer\r\n"
    b'Content-Type: text/plain; name="notes.txt"\r\n'
    b"\r\n"
    b"plain text attachment\r\n"
    b"--outer--\r\n"
)


class FakeTransport:
    """In-memory MailTransport backed by raw RFC 822 messages."""

    def __init__(self) -> None:
        self.messages: dict[int, bytes] = {}
        self.structures: dict[int, BodyPartDescriptor] = {}
        self.bodies: dict[tuple[int, str | None], bytes] = {}
        self.overviews: dict[int, OverviewRecord] = {}
        self.calls: list[tuple] = []
        self.mailboxes = {"INBOX"}
        self.selected = "INBOX"
        self.closed = False

    def add(self, uid: int, raw_message: bytes, **flags: bool) -> None:
        self.messages[uid] = raw_message
        overview = overview_from_message(uid, raw_message)
        for name, value in flags.items():
            setattr(overview, name, value)
        self.overviews[uid] = overview

    def add_structure(
        self,
        uid: int,
        structure: BodyPartDescriptor,
        bodies: dict[str | None, bytes],
        header: bytes = b"From: sender@example.com\r\n\r\n",
        date: str | None = "Tue, 1 Jan 2019 00:00:00 +0000",
    ) -> None:
        self.messages[uid] = header
        self.structures[uid] = structure
        for part, body in bodies.items():
            self.bodies[(uid, part)] = body
        self.overviews[uid] = OverviewRecord(uid=uid, subject="synthetic", date=date, size=123)

    def _parsed(self, uid: int) -> EmailMessage:
        if uid not in self.messages:
            raise TransportError(f"Message UID {uid} not found")
        return parse_message(self.messages[uid])

    def select(self, mailbox: str) -> None:
        self.calls.append(("select", mailbox))
        self.selected = mailbox

    def close(self) -> None:
        self.calls.append(("close",))
        self.closed = True

    def fetch_overview(self, uid: int) -> OverviewRecord:
        self.calls.append(("fetch_overview", uid))
        if uid not in self.overviews:
            raise TransportError(f"Message UID {uid} not found")
        return self.overviews[uid]

    def fetch_header_block(self, uid: int) -> bytes:
        self.calls.append(("fetch_header_block", uid))
        if uid not in self.messages:
            raise TransportError(f"Message UID {uid} not found")
        return header_block(self.messages[uid])

    def fetch_structure(self, uid: int) -> BodyPartDescriptor:
        self.calls.append(("fetch_structure", uid))
        if uid in self.structures:
            return self.structures[uid]
        return describe_message(self._parsed(uid))

    def fetch_body(self, uid: int, part: str | None = None) -> bytes:
        self.calls.append(("fetch_body", uid, part))
        if (uid, part) in self.bodies:
            return self.bodies[(uid, part)]
        return extract_part(self._parsed(uid), part)

    def search(self, criteria: str = "ALL") -> list[int]:
        self.calls.append(("search", criteria))
        if criteria == "RECENT":
            return [uid for uid, overview in sorted(self.overviews.items()) if overview.recent]
        return sorted(self.messages)

    def num_messages(self) -> int:
        return len(self.messages)

    def uid_for_sequence(self, sequence: int) -> int:
        return sorted(self.messages)[sequence - 1]

    def set_flag(self, uid: int, flag: str) -> None:
        self.calls.append(("set_flag", uid, flag))

    def clear_flag(self, uid: int, flag: str) -> None:
        self.calls.append(("clear_flag", uid, flag))

    def delete(self, uid: int) -> None:
        self.calls.append(("delete", uid))

    def move(self, uid: int, mailbox: str) -> None:
        self.calls.append(("move", uid, mailbox))

    def expunge(self) -> None:
        self.calls.append(("expunge",))

    def has_mailbox(self, mailbox: str) -> bool:
        return mailbox in self.mailboxes

    def create_mailbox(self, mailbox: str) -> None:
        self.calls.append(("create_mailbox", mailbox))
        self.mailboxes.add(mailbox)

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def server(transport: FakeTransport, test_logger: logging.Logger) -> Server:
    return Server("imap.example.com", 993, transport_factory=lambda spec: transport, logger=test_logger)


@pytest.fixture()
def settings(tmp_path: Path, monkeypatch) -> Settings:  # noqa: ANN001
    for name in ("MAILFETCH_HOME", "MAILFETCH_LOG_DIR", "MAILFETCH_DOWNLOAD_DIR", "MAILFETCH_IMAP_HOST"):
        monkeypatch.delenv(name, raising=False)
    root = tmp_path / "project"
    root.mkdir(parents=True, exist_ok=True)
    s = Settings.load(base_dir=root)
    s.ensure_directories()
    return s


@pytest.fixture()
def test_logger() -> logging.Logger:
    logger = logging.getLogger("mailfetch-test")
    logger.handlers.clear()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.INFO)
    return logger
