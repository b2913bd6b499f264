import pytest

from core import storage
from core.errors import ValidationError


def test_check_upload_rules(monkeypatch):
    with pytest.raises(ValueError):
        storage.check_upload("secrets", "a.pdf", b"x")
    with pytest.raises(ValidationError):
        storage.check_upload("resumes", "cv.exe", b"x")
    with pytest.raises(ValidationError):
        storage.check_upload("avatars", "me.png", b"")

    monkeypatch.setenv("MAX_UPLOAD_MB", "1")
    with pytest.raises(ValidationError) as exc:
        storage.check_upload("verification-documents", "id.pdf", b"x" * (1024 * 1024 + 1))
    assert "Maximum size: 1MB" in exc.value.errors[0]
    assert storage.check_upload("resumes", "CV.Final.PDF", b"x") == ".pdf"


def test_save_read_delete_roundtrip():
    relative = storage.save_upload("resumes", "7", "cv.pdf", b"%PDF-1.4")
    assert relative.startswith("resumes/7/")
    assert relative.endswith(".pdf")
    assert storage.read_upload(relative) == b"%PDF-1.4"

    storage.delete_upload(relative)
    assert storage.read_upload(relative) is None


def test_resolve_path_refuses_traversal():
    assert storage.resolve_path("../outside.txt") is None
    assert storage.resolve_path("resumes/../../etc/passwd") is None
    assert storage.resolve_path("resumes/1/a.pdf") is not None


def test_save_upload_refuses_traversal_prefix():
    with pytest.raises(ValidationError):
        storage.save_upload("resumes", "../../..", "cv.pdf", b"x")
