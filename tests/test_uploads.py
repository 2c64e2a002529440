import io

import httpx
import pytest

from lms.errors import ValidationError
from lms.uploads import (
    ProgressReader, as_upload, file_errors, file_extension, format_file_size, lesson_file_errors,
    validate_files,
)

MB = 1024 * 1024


class _Uploaded(io.BytesIO):
    """Stand-in for Streamlit's UploadedFile (a BytesIO with name/size/type)."""

    def __init__(self, name, data=b"x", type="application/pdf", size=None):
        super().__init__(data)
        self.name = name
        self.type = type
        self.size = len(data) if size is None else size


def test_extension_is_lowercase_with_dot():
    assert file_extension("Report.PDF") == ".pdf"
    assert file_extension("archive.tar.gz") == ".gz"


def test_name_without_extension():
    assert file_extension("Makefile") == ""
    assert file_extension(".bashrc") == ""
    assert file_errors("Makefile", 10, server_allowed=[".pdf"]) == [
        "Files without an extension are not allowed"
    ]
    assert file_errors("Makefile", 10) == []


def test_size_limit():
    assert file_errors("a.pdf", 100 * MB) == []
    assert file_errors("a.pdf", 100 * MB + 1) == ["File size exceeds 100MB limit"]


def test_explicit_accepted_list_wins_over_server_list():
    assert file_errors("a.mp4", 10, accepted=[".mp4"], server_allowed=[".pdf"]) == []
    assert file_errors("a.pdf", 10, accepted=[".mp4"], server_allowed=[".pdf"]) == [
        "File type .pdf is not allowed"
    ]


def test_server_list_used_when_no_accepted_list():
    assert file_errors("a.zip", 10, server_allowed=["pdf", ".ZIP"]) == []
    assert file_errors("a.exe", 10, server_allowed=[".pdf"]) == ["File type .exe is not allowed"]


def test_empty_server_list_allows_everything():
    assert file_errors("anything.xyz", 10) == []


def test_validate_files_numbers_each_problem():
    files = [_Uploaded("ok.pdf"), _Uploaded("bad.exe", size=101 * MB)]

    with pytest.raises(ValidationError) as exc:
        validate_files(files, server_allowed=[".pdf"])

    (problem,) = exc.value.errors["files"]
    assert problem.startswith("File 2 (bad.exe): File size exceeds 100MB limit")
    assert "File type .exe is not allowed" in problem


@pytest.mark.parametrize(
    "size,text", [(0, "0 Bytes"), (512, "512 Bytes"), (1536, "1.5 KB"), (5 * MB, "5 MB")]
)
def test_format_file_size(size, text):
    assert format_file_size(size) == text


def test_progress_reader_reports_integer_percent():
    seen = []
    reader = ProgressReader(io.BytesIO(b"a" * 1000), callback=seen.append)

    while reader.read(250):
        pass

    assert seen == [25, 50, 75, 100]
    assert reader.total == 1000


def test_progress_resets_on_rewind():
    reader = ProgressReader(io.BytesIO(b"abcd"))
    reader.read()
    assert reader.percent == 100
    reader.seek(0)
    assert reader.read_bytes == 0
    assert reader.tell() == 0


def test_progress_reader_streams_through_httpx_multipart():
    seen = []
    received = {}

    def handler(request):
        received["body"] = request.content
        return httpx.Response(200, json={"success": True})

    upload = as_upload(_Uploaded("notes.pdf", b"%PDF" * 5000), callback=seen.append)
    with httpx.Client(transport=httpx.MockTransport(handler)) as http:
        http.post("http://files.test/upload", files={"file": upload})

    assert b'filename="notes.pdf"' in received["body"]
    assert seen and seen[-1] == 100


def test_lesson_video_must_be_small_mp4():
    assert lesson_file_errors(_Uploaded("intro.mp4", size=50 * MB)) == {}
    problems = lesson_file_errors(_Uploaded("intro.mov", size=101 * MB))
    assert problems["video"] == ["Video (intro.mov): File size exceeds 100MB limit, File type .mov is not allowed"]


def test_lesson_attachments_limited_to_10mb_and_server_types():
    files = [_Uploaded("notes.pdf", size=2 * MB), _Uploaded("big.pdf", size=11 * MB), _Uploaded("run.exe")]

    problems = lesson_file_errors(attachments=files, server_allowed=[".pdf"])

    assert problems == {"attachments": [
        "File 2 (big.pdf): File size exceeds 10MB limit",
        "File 3 (run.exe): File type .exe is not allowed",
    ]}
