"""Binary or URL-referenced media attached to chat messages."""

from __future__ import annotations

import mimetypes
import uuid
from dataclasses import dataclass
from pathlib import Path


class MediaFormat:
    # -- documents
    DOC_PDF = "application/pdf"
    DOC_CSV = "text/csv"
    DOC_DOC = "application/msword"
    DOC_DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    DOC_XLS = "application/vnd.ms-excel"
    DOC_XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    DOC_HTML = "text/html"
    DOC_TXT = "text/plain"
    DOC_MD = "text/markdown"
    # -- video
    VIDEO_MKV = "video/x-matroska"
    VIDEO_MOV = "video/quicktime"
    VIDEO_MP4 = "video/mp4"
    VIDEO_WEBM = "video/webm"
    VIDEO_FLV = "video/x-flv"
    VIDEO_MPEG = "video/mpeg"
    VIDEO_WMV = "video/x-ms-wmv"
    VIDEO_THREE_GP = "video/3gpp"
    # -- images
    IMAGE_PNG = "image/png"
    IMAGE_JPEG = "image/jpeg"
    IMAGE_GIF = "image/gif"
    IMAGE_WEBP = "image/webp"


@dataclass
class Media:
    """
    A piece of media.

    *data* is either raw ``bytes`` or a ``str`` URL.  When no *name* is
    given one is generated as ``media-<subtype>-<uuid4>``.
    """

    mime_type: str
    data: bytes | str
    id: str | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        if not self.mime_type:
            raise ValueError("MimeType must not be empty")
        if self.data is None:
            raise ValueError("Data must not be None")
        if not self.name:
            subtype = self.mime_type.split("/", 1)[-1]
            self.name = f"media-{subtype}-{uuid.uuid4()}"

    @classmethod
    def from_uri(cls, mime_type: str, uri: str, name: str | None = None) -> Media:
        return cls(mime_type=mime_type, data=uri, name=name)

    @classmethod
    def from_path(
        cls,
        path: str | Path,
        mime_type: str | None = None,
        name: str | None = None,
    ) -> Media:
        """Read *path* into memory, guessing the MIME type when not given."""
        p = Path(path)
        if mime_type is None:
            mime_type, _ = mimetypes.guess_type(p.name)
            if mime_type is None:
                raise ValueError(f"Cannot guess MIME type of {p.name!r}")
        return cls(mime_type=mime_type, data=p.read_bytes(), name=name or p.name)

    def data_as_bytes(self) -> bytes:
        if not isinstance(self.data, bytes):
            raise TypeError("Media data is not a bytes object")
        return self.data
