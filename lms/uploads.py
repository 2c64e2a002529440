"""Client-side checks for file uploads and a progress-reporting reader.

Extensions are compared with the leading dot, lower-cased (".pdf"). An
explicit accepted list wins over the server's allow-list; an empty server
list allows every extension.
"""
import logging
import os
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from lms.config import MAX_UPLOAD_BYTES
from lms.errors import ValidationError

logger = logging.getLogger(__name__)

VIDEO_TYPES = (".mp4",)
VIDEO_MAX_BYTES = MAX_UPLOAD_BYTES
ATTACHMENT_MAX_BYTES = 10 * 1024 * 1024


def file_extension(filename: str) -> str:
    """Lower-cased extension with its dot, or "" when the name has none."""
    base = os.path.basename(filename or "")
    if "." not in base.strip("."):
        return ""
    return "." + base.rsplit(".", 1)[-1].lower()


def _normalise(extensions: Iterable[str]) -> List[str]:
    return [e.lower() if e.startswith(".") else "." + e.lower() for e in extensions if e]


def file_errors(filename: str, size: int, accepted: Sequence[str] = (),
                server_allowed: Sequence[str] = (), max_bytes: int = MAX_UPLOAD_BYTES) -> List[str]:
    errors = []
    if size > max_bytes:
        errors.append(f"File size exceeds {round(max_bytes / (1024 * 1024))}MB limit")

    ext = file_extension(filename)
    if accepted:
        allowed = ext in _normalise(accepted)
    else:
        server = _normalise(server_allowed)
        allowed = not server or ext in server
    if not allowed:
        errors.append(f"File type {ext} is not allowed" if ext else "Files without an extension are not allowed")
    return errors


def validate_files(files, accepted: Sequence[str] = (), server_allowed: Sequence[str] = (),
                   max_bytes: int = MAX_UPLOAD_BYTES):
    """Raise ValidationError listing every bad file, numbered from 1."""
    problems = []
    for index, f in enumerate(files, start=1):
        errors = file_errors(f.name, f.size, accepted, server_allowed, max_bytes)
        if errors:
            problems.append(f"File {index} ({f.name}): {', '.join(errors)}")
    if problems:
        raise ValidationError({"files": problems}, message="\n".join(problems))


def lesson_file_errors(video=None, attachments: Sequence = (),
                       server_allowed: Sequence[str] = ()) -> Dict[str, List[str]]:
    """Problems with a lesson's uploads, keyed "video" and "attachments".

    The video must be an MP4 under the upload ceiling; attachments follow the
    server allow-list with a smaller per-file limit.
    """
    problems = {}
    if video is not None:
        errors = file_errors(video.name, video.size, accepted=VIDEO_TYPES, max_bytes=VIDEO_MAX_BYTES)
        if errors:
            problems["video"] = [f"Video ({video.name}): {', '.join(errors)}"]
    try:
        validate_files(attachments, server_allowed=server_allowed, max_bytes=ATTACHMENT_MAX_BYTES)
    except ValidationError as e:
        problems["attachments"] = e.errors["files"]
    return problems


def format_file_size(size: int) -> str:
    if size == 0:
        return "0 Bytes"
    units = ("Bytes", "KB", "MB", "GB")
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(units) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {units[unit]}"


class ProgressReader:
    """File-like wrapper reporting integer upload percent as httpx reads it."""

    def __init__(self, raw, total: Optional[int] = None,
                 callback: Optional[Callable[[int], None]] = None):
        self._raw = raw
        self.total = total if total is not None else _length(raw)
        self.callback = callback
        self.read_bytes = 0
        self.percent = 0

    def read(self, size: int = -1) -> bytes:
        chunk = self._raw.read(size)
        if chunk:
            self.read_bytes += len(chunk)
            self._report()
        return chunk

    def _report(self):
        if not self.total:
            return
        percent = min(100, round(self.read_bytes * 100 / self.total))
        if percent != self.percent:
            self.percent = percent
            if self.callback:
                self.callback(percent)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        position = self._raw.seek(offset, whence)
        if whence == os.SEEK_SET and offset == 0:
            self.read_bytes = 0
        return position

    def tell(self) -> int:
        return self._raw.tell()


def _length(raw) -> Optional[int]:
    size = getattr(raw, "size", None)
    if size is not None:
        return size
    try:
        here = raw.tell()
        end = raw.seek(0, os.SEEK_END)
        raw.seek(here)
        return end - here
    except (AttributeError, OSError):
        return None


def as_upload(uploaded, callback: Optional[Callable[[int], None]] = None):
    """(filename, reader, content_type) tuple from a Streamlit UploadedFile."""
    reader = ProgressReader(uploaded, total=getattr(uploaded, "size", None), callback=callback)
    return (uploaded.name, reader, getattr(uploaded, "type", None) or "application/octet-stream")
