from __future__ import annotations

import re
from typing import Any
from urllib.parse import unquote_to_bytes

from mailfetch.core.mime.decoder import encoding_from_name, transcode
from mailfetch.sources.models import BodyParameter, BodyPartDescriptor, BodyType

RFC2231_KEY_PATTERN = re.compile(r"^(?P<name>[^*]+)\*(?:(?P<index>\d+)(?P<encoded>\*)?)?$")


class BodyStructureError(ValueError):
    pass


def _text(token: Any) -> str | None:
    if isinstance(token, int):
        return str(token)
    if isinstance(token, (bytes, bytearray)):
        return transcode(bytes(token))
    if isinstance(token, str):
        return token
    return None


def _int(token: Any) -> int | None:
    if isinstance(token, int):
        return token
    text = _text(token)
    if text is None or not text.isdigit():
        return None
    return int(text)


def _decode_parameters(pairs: list[tuple[str, str]]) -> tuple[BodyParameter, ...] | None:
    """Collapse RFC 2231 ``name*`` / ``name*0*`` continuations into plain values."""
    plain: dict[str, str] = {}
    segments: dict[str, list[tuple[int, bool, str]]] = {}
    order: list[str] = []

    for key, value in pairs:
        match = RFC2231_KEY_PATTERN.match(key)
        if match is None:
            name = key
            if name not in order:
                order.append(name)
            plain[name] = value
            continue
        name = match.group("name")
        if name not in order:
            order.append(name)
        index = int(match.group("index") or 0)
        encoded = match.group("index") is None or bool(match.group("encoded"))
        segments.setdefault(name, []).append((index, encoded, value))

    result: list[BodyParameter] = []
    for name in order:
        if name not in segments:
            result.append(BodyParameter(attribute=name, value=plain[name]))
            continue

        charset = None
        raw = bytearray()
        for index, encoded, value in sorted(segments[name]):
            if encoded:
                if index == 0 and value.count("'") >= 2:
                    charset, _, value = value.split("'", 2)
                raw.extend(unquote_to_bytes(value))
            else:
                raw.extend(value.encode("utf-8"))
        result.append(BodyParameter(attribute=name, value=transcode(bytes(raw), charset)))

    return tuple(result) or None


def _parameters(token: Any) -> tuple[BodyParameter, ...] | None:
    if not isinstance(token, (tuple, list)):
        return None
    pairs: list[tuple[str, str]] = []
    for key, value in zip(token[::2], token[1::2]):
        key_text = _text(key)
        if key_text is None:
            continue
        pairs.append((key_text, _text(value) or ""))
    return _decode_parameters(pairs)


def _disposition(token: Any) -> tuple[str | None, tuple[BodyParameter, ...] | None]:
    if not isinstance(token, (tuple, list)) or not token:
        return None, None
    name = _text(token[0])
    parameters = _parameters(token[1]) if len(token) > 1 else None
    return (name.lower() if name else None), parameters


def _at(body: Any, index: int) -> Any:
    return body[index] if len(body) > index else None


def _split_multipart(body: Any) -> tuple[list[Any], int]:
    # imapclient nests the children of a top-level multipart into a list;
    # multiparts embedded in message/rfc822 keep them as leading tuples
    if isinstance(body[0], list):
        return list(body[0]), 1
    index = 0
    while index < len(body) and isinstance(body[index], (tuple, list)):
        index += 1
    return list(body[:index]), index


def to_descriptor(body: Any) -> BodyPartDescriptor:
    """Convert an ``imapclient`` BODYSTRUCTURE value into a descriptor tree.

    ``body`` is the :class:`imapclient.response_types.BodyData` found under
    ``b"BODYSTRUCTURE"`` in a fetch response, or any nested part of it.
    """
    if not isinstance(body, (tuple, list)) or not body:
        raise BodyStructureError(f"Not a body structure: {body!r}")

    if isinstance(body[0], (tuple, list)):
        children, rest_index = _split_multipart(body)
        # children are followed by subtype, then extension data
        subtype = _text(_at(body, rest_index))
        disposition, dparameters = _disposition(_at(body, rest_index + 2))
        return BodyPartDescriptor(
            type=BodyType.MULTIPART,
            subtype=subtype.upper() if subtype else None,
            encoding=0,
            size=None,
            parameters=_parameters(_at(body, rest_index + 1)),
            dparameters=dparameters,
            disposition=disposition,
            parts=tuple(to_descriptor(child) for child in children),
        )

    body_type = BodyType.from_name(_text(body[0]))
    subtype = _text(_at(body, 1))
    parts: tuple[BodyPartDescriptor, ...] | None = None
    extension_index = 7

    if body_type == BodyType.TEXT:
        # lines
        extension_index = 8
    elif body_type == BodyType.MESSAGE and (subtype or "").upper() == "RFC822":
        # envelope, body, lines
        inner = _at(body, 8)
        if isinstance(inner, (tuple, list)) and inner:
            inner_descriptor = to_descriptor(inner)
            parts = inner_descriptor.parts if inner_descriptor.type == BodyType.MULTIPART else (inner_descriptor,)
        extension_index = 10

    # extension data starts with md5
    disposition, dparameters = _disposition(_at(body, extension_index + 1))

    return BodyPartDescriptor(
        type=body_type,
        subtype=subtype.upper() if subtype else None,
        encoding=encoding_from_name(_text(_at(body, 5))),
        size=_int(_at(body, 6)),
        parameters=_parameters(_at(body, 2)),
        dparameters=dparameters,
        disposition=disposition,
        parts=parts,
    )
