from __future__ import annotations

import pytest
from imapclient.exceptions import IMAPClientAbortError
from imapclient.response_parser import parse_fetch_response

from conftest import MIXED_MESSAGE, SIMPLE_MESSAGE
from mailfetch.errors import TransportError, UnsupportedService
from mailfetch.sources import ConnectionSpec, open_transport
from mailfetch.sources.email_imap import ImapEmailSource
from mailfetch.sources.email_pop3 import Pop3EmailSource
from mailfetch.sources.models import BodyType


class StubClient:
    """Answers fetches by running raw server replies through imapclient's parser."""

    def __init__(self, replies: list[list] | None = None, capabilities: tuple[str, ...] = ("IMAP4REV1",)):
        self.replies = replies or []
        self.capabilities = capabilities
        self.use_uid = True
        self.calls: list[tuple] = []

    def fetch(self, messages: list[int], data: list[str]) -> dict:
        self.calls.append(("fetch", tuple(messages), tuple(data), self.use_uid))
        return parse_fetch_response(self.replies.pop(0), uid_is_key=self.use_uid)

    def select_folder(self, folder: str, readonly: bool = False) -> dict:
        self.calls.append(("select_folder", folder, readonly))
        return {b"EXISTS": 3, b"FLAGS": (b"\\Seen",)}

    def search(self, criteria: str) -> list[int]:
        self.calls.append(("search", criteria))
        return [3, 5, 8] if criteria == "UNSEEN" else []

    def add_flags(self, messages: list[int], flags: list[str]) -> dict:
        self.calls.append(("add_flags", tuple(messages), tuple(flags)))
        return {}

    def remove_flags(self, messages: list[int], flags: list[str]) -> dict:
        self.calls.append(("remove_flags", tuple(messages), tuple(flags)))
        return {}

    def has_capability(self, capability: str) -> bool:
        return capability in self.capabilities

    def move(self, messages: list[int], folder: str) -> None:
        self.calls.append(("move", tuple(messages), folder))

    def copy(self, messages: list[int], folder: str) -> None:
        self.calls.append(("copy", tuple(messages), folder))

    def expunge(self) -> None:
        raise IMAPClientAbortError("socket closed")

    def folder_exists(self, folder: str) -> bool:
        return folder == "Archive"

    def close_folder(self) -> None:
        self.calls.append(("close_folder",))

    def logout(self) -> None:
        self.calls.append(("logout",))


def test_imap_overview_parses_flags_size_and_headers() -> None:
    stub = StubClient(
        [
            [
                (
                    b"1 (UID 5 FLAGS (\\Seen \\Flagged) RFC822.SIZE 1234 BODY[HEADER.FIELDS (SUBJECT DATE)] {51}",
                    b"Subject: Hi\r\nDate: Tue, 1 Jan 2019 00:00:00 +0000\r\n",
                ),
                b")",
            ]
        ]
    )
    overview = ImapEmailSource(stub).fetch_overview(5)

    assert stub.calls[0] == ("fetch", (5,), ("FLAGS", "RFC822.SIZE", "BODY.PEEK[HEADER.FIELDS (SUBJECT DATE)]"), True)
    assert overview.subject == "Hi"
    assert overview.date == "Tue, 1 Jan 2019 00:00:00 +0000"
    assert overview.size == 1234
    assert overview.seen is True
    assert overview.flagged is True
    assert overview.recent is False


def test_imap_overview_ignores_protocol_words_inside_header_literal() -> None:
    header = b"Subject: FLAGS (\\Flagged) RFC822.SIZE 1\r\n\r\n"
    stub = StubClient(
        [
            [
                (b"1 (UID 5 BODY[HEADER.FIELDS (SUBJECT DATE)] {%d}" % len(header), header),
                b" FLAGS (\\Seen) RFC822.SIZE 500)",
            ]
        ]
    )
    overview = ImapEmailSource(stub).fetch_overview(5)

    assert overview.size == 500
    assert overview.seen is True
    assert overview.flagged is False
    assert overview.subject == "FLAGS (\\Flagged) RFC822.SIZE 1"


def test_imap_structure_and_bodies() -> None:
    stub = StubClient(
        [
            [b'1 (UID 5 BODYSTRUCTURE ("TEXT" "PLAIN" ("CHARSET" "UTF-8") NIL NIL "7BIT" 5 1 NIL NIL NIL))'],
            [(b"1 (UID 5 BODY[1] {5}", b"hello"), b")"],
            [b'1 (UID 5 BODY[TEXT] "say \\"hi\\"")'],
            [b"1 (UID 5 BODY[2] NIL)"],
        ]
    )
    source = ImapEmailSource(stub)

    assert source.fetch_structure(5).type == BodyType.TEXT
    assert source.fetch_body(5, "1") == b"hello"
    assert source.fetch_body(5) == b'say "hi"'
    assert source.fetch_body(5, "2") == b""
    assert stub.calls[2] == ("fetch", (5,), ("BODY.PEEK[TEXT]",), True)


def test_imap_missing_message_raises() -> None:
    stub = StubClient([[None]])
    with pytest.raises(TransportError):
        ImapEmailSource(stub).fetch_header_block(99)


def test_imap_uid_for_sequence_fetches_by_sequence_number() -> None:
    stub = StubClient([[b"2 (UID 8)"]])
    source = ImapEmailSource(stub)

    assert source.uid_for_sequence(2) == 8
    assert stub.calls[0] == ("fetch", (2,), ("UID",), False)
    assert stub.use_uid is True


def test_imap_select_search_and_flags() -> None:
    stub = StubClient(capabilities=("IMAP4REV1",))
    source = ImapEmailSource(stub, readonly=True)

    source.select("Sent Items")
    assert source.num_messages() == 3
    assert source.search("UNSEEN") == [3, 5, 8]
    assert source.search() == []
    source.set_flag(5, "\\Flagged")
    source.clear_flag(5, "\\Seen")
    assert ("select_folder", "Sent Items", True) in stub.calls
    assert ("add_flags", (5,), ("\\Flagged",)) in stub.calls
    assert ("remove_flags", (5,), ("\\Seen",)) in stub.calls


def test_imap_move_prefers_move_extension() -> None:
    stub = StubClient(capabilities=("IMAP4REV1", "MOVE"))
    ImapEmailSource(stub).move(5, "Old Mail")
    assert stub.calls == [("move", (5,), "Old Mail")]


def test_imap_move_falls_back_to_copy_and_delete() -> None:
    stub = StubClient()
    ImapEmailSource(stub).move(5, "Archive")
    assert stub.calls == [("copy", (5,), "Archive"), ("add_flags", (5,), ("\\Deleted",))]


def test_imap_mailbox_checks_and_close() -> None:
    stub = StubClient()
    source = ImapEmailSource(stub)
    source.select("INBOX")

    assert source.has_mailbox("Archive") is True
    assert source.has_mailbox("Nope") is False
    source.close()
    assert stub.calls[-2:] == [("close_folder",), ("logout",)]


def test_imap_errors_are_wrapped() -> None:
    with pytest.raises(TransportError):
        ImapEmailSource(StubClient()).expunge()


class StubPop3:
    def __init__(self, messages: list[bytes]):
        self.messages = messages
        self.retrieved: list[int] = []
        self.deleted: list[int] = []

    def stat(self) -> tuple[int, int]:
        return len(self.messages), sum(len(message) for message in self.messages)

    def retr(self, which: int) -> tuple[bytes, list[bytes], int]:
        self.retrieved.append(which)
        raw = self.messages[which - 1]
        return b"+OK", raw.split(b"\r\n")[:-1], len(raw)

    def dele(self, which: int) -> bytes:
        self.deleted.append(which)
        return b"+OK"

    def quit(self) -> bytes:
        return b"+OK"


def test_pop3_derives_everything_from_one_retrieval() -> None:
    stub = StubPop3([SIMPLE_MESSAGE, MIXED_MESSAGE])
    source = Pop3EmailSource(stub)

    assert source.search() == [1, 2]
    assert source.fetch_overview(2).subject == "Report"
    assert source.fetch_structure(2).subtype == "MIXED"
    assert source.fetch_body(2, "3") == b"JVBERi0xLjQK"
    assert b"Subject: Report" in source.fetch_header_block(2)
    assert stub.retrieved == [2]

    with pytest.raises(TransportError):
        source.fetch_body(2, "7")


@pytest.mark.parametrize(
    "call",
    [
        lambda source: source.set_flag(1, "\\Seen"),
        lambda source: source.move(1, "Archive"),
        lambda source: source.search("UNSEEN"),
        lambda source: source.select("Sent"),
        lambda source: source.create_mailbox("Archive"),
    ],
)
def test_pop3_unsupported_operations(call) -> None:  # noqa: ANN001
    with pytest.raises(UnsupportedService):
        call(Pop3EmailSource(StubPop3([SIMPLE_MESSAGE])))


def test_pop3_delete() -> None:
    stub = StubPop3([SIMPLE_MESSAGE])
    Pop3EmailSource(stub).delete(1)
    assert stub.deleted == [1]


def test_open_transport_rejects_nntp() -> None:
    with pytest.raises(UnsupportedService):
        open_transport(ConnectionSpec(host="news.example.com", port=119, service="nntp"))
