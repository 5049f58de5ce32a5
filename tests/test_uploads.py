from chat_backend.config import Settings
from chat_backend.uploads import store_upload, unique_filename, validate_upload


def test_validate_upload_limits():
    settings = Settings()

    assert validate_upload(10 * 1024 * 1024, "application/pdf", settings) == []
    assert validate_upload(10 * 1024 * 1024 + 1, "image/jpeg", settings) == ["File size should be less than 10MB"]
    assert validate_upload(1, "image/gif", settings) == ["File type should be JPEG, PNG, or PDF"]
    assert len(validate_upload(11 * 1024 * 1024, None, settings)) == 2


def test_unique_filename_keeps_lowercased_extension():
    name = unique_filename("Invoice.March.PDF")

    assert name.endswith(".pdf")
    assert name != unique_filename("Invoice.March.PDF")
    assert "." not in unique_filename("README")


def test_store_upload_writes_under_public_uploads(tmp_path):
    settings = Settings(public_dir=str(tmp_path / "public"))

    stored = store_upload(b"%PDF-1.4", "a.pdf", "application/pdf", settings)

    assert (tmp_path / "public" / "uploads" / stored.pathname).read_bytes() == b"%PDF-1.4"
    assert stored.as_dict() == {
        "url": f"/uploads/{stored.pathname}",
        "pathname": stored.pathname,
        "contentType": "application/pdf",
    }
