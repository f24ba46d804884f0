from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from mailfetch.sources.models import BodyPartDescriptor, BodyType

from .decoder import decode, transcode

PLAINTEXT_SEPARATOR = "\n\n"
HTML_SEPARATOR = "<br><br>"

TYPE_NAMES = {
    BodyType.TEXT: "text",
    BodyType.MULTIPART: "multipart",
    BodyType.MESSAGE: "message",
    BodyType.APPLICATION: "application",
    BodyType.AUDIO: "audio",
    BodyType.IMAGE: "image",
    BodyType.VIDEO: "video",
    BodyType.OTHER: "other",
}


class PartRole(Enum):
    ATTACHMENT = "attachment"
    PLAINTEXT = "plaintext"
    HTML = "html"
    CONTAINER = "container"


def type_id_to_string(type_id: int | None) -> str:
    try:
        return TYPE_NAMES[BodyType(type_id)]
    except (ValueError, TypeError):
        return TYPE_NAMES[BodyType.OTHER]


def mime_type_of(structure: BodyPartDescriptor) -> str:
    mime_type = type_id_to_string(structure.type)
    if structure.subtype:
        mime_type += "/" + structure.subtype.lower()
    return mime_type


def parameters_from_structure(structure: BodyPartDescriptor) -> dict[str, str]:
    """Content-type parameters merged with content-disposition parameters.

    Keys are lowercased; a disposition parameter overrides a content-type
    parameter of the same name.
    """
    parameters: dict[str, str] = {}
    for source in (structure.parameters, structure.dparameters):
        for parameter in source or ():
            parameters[parameter.attribute.lower()] = parameter.value
    return parameters


def classify(structure: BodyPartDescriptor, parameters: dict[str, str] | None = None) -> PartRole:
    if parameters is None:
        parameters = parameters_from_structure(structure)

    # a named part is an attachment even when it is text/plain
    if "name" in parameters or "filename" in parameters:
        return PartRole.ATTACHMENT

    if structure.type in (BodyType.TEXT, BodyType.MULTIPART):
        # multipart content lands in the plaintext bucket
        if (structure.subtype or "").lower() == "plain" or structure.type == BodyType.MULTIPART:
            return PartRole.PLAINTEXT
        return PartRole.HTML

    return PartRole.CONTAINER


@dataclass(slots=True)
class BodyContent:
    plaintext: str | None = None
    html: str | None = None
    attachments: list[Any] = field(default_factory=list)

    def append_plaintext(self, chunk: str) -> None:
        if self.plaintext is None:
            self.plaintext = ""
        else:
            self.plaintext += PLAINTEXT_SEPARATOR
        self.plaintext += chunk.strip()

    def append_html(self, chunk: str) -> None:
        if self.html is None:
            self.html = ""
        else:
            self.html += HTML_SEPARATOR
        self.html += chunk


class BodyPartWalker:
    """Depth-first walk over a body structure.

    ``fetch_part`` receives a dotted part path (``None`` for the body of a
    single-part message) and returns the raw, still transfer-encoded bytes.
    ``make_attachment`` receives the descriptor and its part path.
    """

    def __init__(
        self,
        fetch_part: Callable[[str | None], bytes],
        make_attachment: Callable[[BodyPartDescriptor, str | None], Any],
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self._fetch_part = fetch_part
        self._make_attachment = make_attachment
        self.logger = logger or logging.getLogger("mailfetch.structure")

    def walk(self, structure: BodyPartDescriptor) -> BodyContent:
        content = BodyContent()
        if structure.parts is None:
            self.process(structure, None, content)
        else:
            for index, part in enumerate(structure.parts, start=1):
                self.process(part, str(index), content)
        return content

    def process(self, structure: BodyPartDescriptor, part_id: str | None, content: BodyContent) -> None:
        parameters = parameters_from_structure(structure)
        role = classify(structure, parameters)
        self.logger.debug("Part %s (%s) classified as %s", part_id or "body", mime_type_of(structure), role.value)

        if role is PartRole.ATTACHMENT:
            content.attachments.append(self._make_attachment(structure, part_id))
        elif role is not PartRole.CONTAINER:
            raw_body = self._fetch_part(part_id)
            text = transcode(decode(raw_body, structure.encoding), parameters.get("charset"))
            if role is PartRole.PLAINTEXT:
                content.append_plaintext(text)
            else:
                content.append_html(text)

        if structure.parts is not None:
            for index, part in enumerate(structure.parts, start=1):
                child_id = f"{part_id}.{index}" if part_id else str(index)
                self.process(part, child_id, content)
