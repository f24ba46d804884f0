from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from mailfetch.core.mime import decode, decode_mime_header, mime_type_of, parameters_from_structure
from mailfetch.sources.models import BodyPartDescriptor

if TYPE_CHECKING:
    from .message import Message


class Attachment:
    """A named body part of a message.

    The content is fetched from the server the first time :meth:`get_data`
    is called and kept for the lifetime of the object.
    """

    def __init__(self, message: Message, structure: BodyPartDescriptor, part_id: str | None = None):
        self.message_uid = message.uid
        self.server = message.server
        self.logger = message.logger
        self.structure = structure
        self.part_id = part_id

        parameters = parameters_from_structure(structure)
        if "filename" in parameters:
            filename: str | None = parameters["filename"]
        else:
            filename = parameters.get("name")
        self.filename = decode_mime_header(filename) if filename else filename

        self.size = structure.size
        self.mime_type = mime_type_of(structure)
        self.encoding = structure.encoding
        self._data: bytes | None = None

    def __repr__(self) -> str:
        return f"Attachment({self.filename!r}, part={self.part_id!r}, mime_type={self.mime_type!r})"

    def get_mime_type(self) -> str:
        return self.mime_type

    def get_size(self) -> int | None:
        return self.size

    def get_file_name(self) -> str | None:
        return self.filename or None

    def get_data(self) -> bytes:
        if self._data is None:
            transport = self.server.get_transport()
            raw_body = transport.fetch_body(self.message_uid, self.part_id)
            data = decode(raw_body, self.encoding)
            self._data = data.encode("utf-8") if isinstance(data, str) else bytes(data)
            self.logger.debug(
                "Fetched attachment %s of message %s (%s bytes)", self.filename, self.message_uid, len(self._data)
            )
        return self._data

    def save_to_directory(self, path: str | os.PathLike[str]) -> bool:
        directory = Path(path)
        filename = self.get_file_name()
        if not directory.is_dir() or not filename:
            return False
        # never let a filename from the wire climb out of the directory
        name = Path(filename).name
        if name in ("", ".", ".."):
            return False
        return self.save_as(directory / name)

    def save_as(self, path: str | os.PathLike[str]) -> bool:
        target = Path(path)
        if target.exists():
            if target.is_dir() or not os.access(target, os.W_OK):
                return False
        elif not target.parent.is_dir() or not os.access(target.parent, os.W_OK):
            return False

        data = self.get_data()
        try:
            target.write_bytes(data)
        except OSError as exc:
            self.logger.warning("Attachment %s could not be saved to %s: %s", self.filename, target, exc)
            return False
        return True
