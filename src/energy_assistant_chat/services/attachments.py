"""Turns user-selected files into pending attachments."""

import asyncio
import base64
import mimetypes
from pathlib import Path
from typing import Iterable, List, Union

import structlog

from ..domain.models import Attachment

logger = structlog.get_logger()

TEXT_CONTENT_LIMIT = 8000
DEFAULT_TEXT_MIME = "text/plain"

PathLike = Union[str, Path]


class AttachmentReadError(Exception):
    """Raised when a selected file cannot be read."""

    def __init__(self, path: PathLike, reason: str):
        super().__init__(f"Could not read {path}: {reason}")
        self.path = str(path)


def _read_file(path: Path) -> Attachment:
    mime, _ = mimetypes.guess_type(path.name)
    if mime and mime.startswith("image/"):
        encoded = base64.b64encode(path.read_bytes()).decode("ascii")
        return Attachment(
            kind="image",
            name=path.name,
            mime=mime,
            data_url=f"data:{mime};base64,{encoded}",
        )

    text = path.read_bytes().decode("utf-8", errors="replace")
    return Attachment(
        kind="text",
        name=path.name,
        mime=mime or DEFAULT_TEXT_MIME,
        content=text[:TEXT_CONTENT_LIMIT],
    )


async def read_attachment(path: PathLike) -> Attachment:
    """Read one file off the event loop."""
    path = Path(path)
    try:
        attachment = await asyncio.to_thread(_read_file, path)
    except OSError as e:
        raise AttachmentReadError(path, e.strerror or str(e))
    logger.debug("attachment_read", name=attachment.name, kind=attachment.kind)
    return attachment


async def read_attachments(paths: Iterable[PathLike]) -> List[Attachment]:
    """Read all files concurrently. Any failure fails the whole batch."""
    return list(await asyncio.gather(*(read_attachment(p) for p in paths)))
