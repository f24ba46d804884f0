from __future__ import annotations

import base64
import binascii
import codecs
import quopri
import re
from email.errors import HeaderParseError
from email.header import decode_header, ecre
from enum import IntEnum

OUTPUT_CHARSET = "utf-8"
MIME_HEADER = "mime-header"

_FOLDING_PATTERN = re.compile(r"\r?\n(?=[ \t])")
_HEADER_LINE_PATTERN = re.compile(r"^([^:\s]+)[ \t]*:[ \t]?(.*)$", re.DOTALL)
_BASE64_JUNK_PATTERN = re.compile(rb"[^A-Za-z0-9+/]")


class EncodingKind(IntEnum):
    """Content-transfer-encoding codes as reported in IMAP body structures."""

    SEVEN_BIT = 0
    EIGHT_BIT = 1
    BINARY = 2
    BASE64 = 3
    QUOTED_PRINTABLE = 4
    OTHER = 5


ENCODING_NAMES = {
    "7bit": EncodingKind.SEVEN_BIT,
    "8bit": EncodingKind.EIGHT_BIT,
    "binary": EncodingKind.BINARY,
    "base64": EncodingKind.BASE64,
    "quoted-printable": EncodingKind.QUOTED_PRINTABLE,
    "other": EncodingKind.OTHER,
}


def encoding_from_name(name: str | None) -> EncodingKind:
    if not name:
        return EncodingKind.SEVEN_BIT
    return ENCODING_NAMES.get(name.strip().lower(), EncodingKind.OTHER)


def _normalize_encoding(encoding: int | str | None) -> EncodingKind | str | None:
    if isinstance(encoding, int):
        try:
            return EncodingKind(encoding)
        except ValueError:
            return None
    if isinstance(encoding, str):
        lowered = encoding.strip().lower()
        if lowered.isdigit():
            return _normalize_encoding(int(lowered))
        if lowered == MIME_HEADER:
            return MIME_HEADER
        return ENCODING_NAMES.get(lowered)
    return None


def _to_bytes(data: bytes | bytearray | str) -> bytes:
    if isinstance(data, str):
        return data.encode(OUTPUT_CHARSET, errors="surrogateescape")
    return bytes(data)


def _b64decode(data: bytes) -> bytes:
    cleaned = _BASE64_JUNK_PATTERN.sub(b"", data)
    if len(cleaned) % 4 == 1:
        # a single dangling sextet cannot carry a byte
        cleaned = cleaned[:-1]
    # servers routinely drop trailing padding
    cleaned += b"=" * (-len(cleaned) % 4)
    try:
        return base64.b64decode(cleaned)
    except binascii.Error:
        return b""


def normalize_charset(charset: str | None) -> str | None:
    if not charset:
        return None
    name = charset.strip().strip('"').split("//", 1)[0]
    if not name or name.lower() == "default":
        return None
    try:
        return codecs.lookup(name).name
    except LookupError:
        return None


def transcode(data: bytes | bytearray | str, charset: str | None = None) -> str:
    """Turn raw bytes in ``charset`` into text.

    Unknown charsets fall back to UTF-8; bytes that cannot be mapped are
    replaced rather than raising.
    """
    if isinstance(data, str):
        return data
    raw = bytes(data)
    name = normalize_charset(charset) or OUTPUT_CHARSET
    try:
        return raw.decode(name)
    except UnicodeDecodeError:
        return raw.decode(name, errors="replace")


def decode_mime_header(value: str | None) -> str | None:
    """Decode RFC 2047 encoded words, leaving the surrounding text as written.

    Whitespace between two adjacent encoded words is dropped, and adjacent
    words in the same charset are joined before decoding so multibyte
    characters split across words survive.
    """
    if not value:
        return value

    chunks: list[tuple[str | bytes, str | None]] = []
    position = 0
    for match in ecre.finditer(value):
        between = value[position : match.start()]
        position = match.end()
        if between and not (chunks and isinstance(chunks[-1][0], bytes) and between.isspace()):
            chunks.append((between, None))
        try:
            ((data, charset),) = decode_header(match.group(0))
        except (HeaderParseError, ValueError):
            chunks.append((match.group(0), None))
            continue
        if isinstance(data, str):
            chunks.append((data, None))
        elif chunks and isinstance(chunks[-1][0], bytes) and chunks[-1][1] == charset:
            chunks[-1] = (chunks[-1][0] + data, charset)
        else:
            chunks.append((data, charset))
    if position < len(value):
        chunks.append((value[position:], None))

    decoded = "".join(chunk if isinstance(chunk, str) else transcode(chunk, charset) for chunk, charset in chunks)
    return decoded if decoded else value


def decode(data: bytes | bytearray | str, encoding: int | str | None) -> bytes | str:
    """Undo a transfer encoding.

    ``encoding`` is either an :class:`EncodingKind` ordinal, its lowercase
    name, or ``"mime-header"`` for encoded-word header values. Identity
    encodings (7bit, 8bit, binary, other, unknown) return ``data`` untouched.
    """
    kind = _normalize_encoding(encoding)

    if kind == EncodingKind.QUOTED_PRINTABLE:
        return quopri.decodestring(_to_bytes(data))
    if kind == EncodingKind.BASE64:
        return _b64decode(_to_bytes(data))
    if kind == MIME_HEADER:
        text = data if isinstance(data, str) else transcode(data)
        return decode_mime_header(text)
    return data


def split_header_block(raw_headers: bytes | str) -> dict[str, list[str]]:
    text = transcode(raw_headers)
    unfolded = _FOLDING_PATTERN.sub("", text)

    headers: dict[str, list[str]] = {}
    for line in unfolded.splitlines():
        if not line.strip():
            continue
        match = _HEADER_LINE_PATTERN.match(line)
        if not match:
            continue
        name, value = match.groups()
        headers.setdefault(name.lower(), []).append(value.strip())
    return headers


def decode_header_block(raw_headers: bytes | str) -> dict[str, str | list[str]]:
    decoded: dict[str, str | list[str]] = {}
    for name, values in split_header_block(raw_headers).items():
        values = [decode_mime_header(value) or "" for value in values]
        decoded[name] = values[0] if len(values) == 1 else values
    return decoded
