from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from mailfetch.mailbox import Attachment, Message


def _as_list(attachments: Attachment | list[Attachment] | None) -> list[Attachment]:
    if attachments is None:
        return []
    if isinstance(attachments, Attachment):
        return [attachments]
    return list(attachments)


def _target_path(directory: Path, name: str, taken: set[str]) -> Path | None:
    # never let a filename from the wire climb out of the directory
    base = Path(Path(name).name)
    if base.name in ("", ".", ".."):
        return None
    candidate = base.name
    counter = 1
    while candidate in taken:
        candidate = f"{base.stem}-{counter}{base.suffix}"
        counter += 1
    taken.add(candidate)
    return directory / candidate


def export_attachments(
    messages: Iterable[Message],
    out_dir: Path,
    filename: str | None = None,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
) -> list[Path]:
    """Save attachments of ``messages`` into one folder per message UID.

    Attachments of one message that share a filename are numbered
    (``name-1.ext``, ``name-2.ext``) instead of overwriting each other.
    """
    logger = logger or logging.getLogger("mailfetch.export")
    out_dir.mkdir(parents=True, exist_ok=True)

    created_files: list[Path] = []
    for message in messages:
        attachments = _as_list(message.get_attachments(filename))
        if not attachments:
            continue
        message_dir = out_dir / str(message.uid)
        message_dir.mkdir(parents=True, exist_ok=True)
        taken: set[str] = set()
        for attachment in attachments:
            name = attachment.get_file_name()
            target = _target_path(message_dir, name, taken) if name else None
            if target is not None and attachment.save_as(target):
                created_files.append(target.resolve())
            else:
                logger.warning("Attachment %r of message %s was not saved", name, message.uid)

    logger.info("Exported %s attachments to %s", len(created_files), out_dir)
    return created_files
