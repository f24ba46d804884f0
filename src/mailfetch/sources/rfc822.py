from __future__ import annotations

import re
from email import message_from_bytes
from email.message import Message
from email.policy import compat32
from email.utils import collapse_rfc2231_value

from mailfetch.core.mime.decoder import encoding_from_name, split_header_block

from .models import BodyParameter, BodyPartDescriptor, BodyType, OverviewRecord

_HEADER_END_PATTERN = re.compile(rb"\r?\n\r?\n")


def parse_message(raw_message: bytes) -> Message:
    return message_from_bytes(raw_message, policy=compat32)


def _params(part: Message, header: str) -> tuple[BodyParameter, ...] | None:
    if header not in part:
        return None
    params = part.get_params(header=header) or []
    # the first entry is the header value itself
    result = [
        BodyParameter(attribute=name, value=collapse_rfc2231_value(value))
        for name, value in params[1:]
        if name
    ]
    return tuple(result) or None


def _payload_bytes(part: Message) -> bytes:
    payload = part.get_payload(decode=False)
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode("ascii", errors="surrogateescape")
    return b""


def _body_bytes(node: Message) -> bytes:
    if not node.is_multipart():
        return _payload_bytes(node)
    raw = node.as_bytes()
    split = _HEADER_END_PATTERN.split(raw, maxsplit=1)
    return split[1] if len(split) == 2 else b""


def describe_part(part: Message) -> BodyPartDescriptor:
    maintype = part.get_content_maintype()
    parts: tuple[BodyPartDescriptor, ...] | None = None
    size: int | None = None

    if part.is_multipart():
        children = part.get_payload()
        if maintype == "message" and children:
            inner = children[0]
            if inner.is_multipart():
                parts = tuple(describe_part(child) for child in inner.get_payload())
            else:
                parts = (describe_part(inner),)
        else:
            parts = tuple(describe_part(child) for child in children)
    else:
        size = len(_payload_bytes(part))

    return BodyPartDescriptor(
        type=BodyType.from_name(maintype),
        subtype=part.get_content_subtype().upper(),
        encoding=encoding_from_name(part.get("Content-Transfer-Encoding")),
        size=size,
        parameters=_params(part, "content-type"),
        dparameters=_params(part, "content-disposition"),
        disposition=part.get_content_disposition(),
        parts=parts,
    )


def describe_message(message: Message) -> BodyPartDescriptor:
    return describe_part(message)


def extract_part(message: Message, part: str | None = None) -> bytes:
    """Return the raw bytes IMAP would answer for ``BODY[part]``.

    Without ``part`` this is the message text after the top-level header.
    """
    if not part:
        return _body_bytes(message)

    node = message
    for raw_index in part.split("."):
        index = int(raw_index)
        if node.get_content_maintype() == "message" and node.is_multipart():
            node = node.get_payload()[0]
        if node.is_multipart():
            children = node.get_payload()
            if index < 1 or index > len(children):
                raise KeyError(f"No body part {part}")
            node = children[index - 1]
        elif index != 1:
            raise KeyError(f"No body part {part}")

    if node.get_content_maintype() == "message" and node.is_multipart():
        return node.get_payload()[0].as_bytes()
    return _body_bytes(node)


def header_block(raw_message: bytes) -> bytes:
    split = _HEADER_END_PATTERN.split(raw_message, maxsplit=1)
    return split[0] + b"\r\n"


def overview_from_message(uid: int, raw_message: bytes) -> OverviewRecord:
    headers = split_header_block(header_block(raw_message))
    return OverviewRecord(
        uid=uid,
        subject=headers.get("subject", [None])[0],
        date=headers.get("date", [None])[0],
        size=len(raw_message),
    )
