"""Tests for the upload workflow."""

import os

import fitz  # PyMuPDF
import pytest

from conftest import ALICE
from ocr import OCREngine, OCRResult
from workflows import DocumentRepository, NotAuthenticatedError, upload_file, upload_path


class FakeOCR(OCREngine):
    """Returns canned text and records what it was asked to read."""

    def __init__(self, text):
        self.text = text
        self.calls = []

    @property
    def name(self):
        return "fake"

    def recognize(self, image, mime_type="image/png", language_hint="heb+eng"):
        self.calls.append(mime_type)
        return OCRResult(text=self.text, engine=self.name)


def make_pdf(text):
    doc = fitz.open()
    page = doc.new_page()
    if text:
        page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


class TestUploadFile:

    def test_classifies_and_caches(self, alice, file_cache):
        repo, sync = alice
        data = "תאריך קנייה: 01-03-2024".encode("utf-8")
        result = upload_file(repo, "ארנונה_2024.pdf", data)

        doc = result.document
        assert result.duplicate is False
        assert doc.category == "כלכלה"
        # Dates are only read for warranty documents
        assert doc.warranty_start is None
        assert doc.warranty_expires_at is None
        assert doc.owner == ALICE
        assert doc.title == "ארנונה_2024.pdf"
        assert doc.file_type == "application/pdf"
        assert doc.has_file is True
        assert file_cache.get_bytes(doc.id) == data

    def test_duplicate_refused(self, alice):
        repo, sync = alice
        upload_file(repo, "a.txt", b"1")
        result = upload_file(repo, "a.txt", b"2")
        assert result.duplicate is True
        assert result.document is None
        assert len(repo.documents()) == 1

    def test_manual_category_for_unknown_names(self, alice):
        repo, sync = alice
        offered = []

        def choose(categories):
            offered.extend(categories)
            return "בית"

        result = upload_file(repo, "zzz.txt", b"x", choose_category=choose)
        assert result.document.category == "בית"
        assert "אחריות" in offered

    def test_blank_choice_keeps_other(self, alice):
        repo, sync = alice
        result = upload_file(repo, "zzz.txt", b"x", choose_category=lambda c: "  ")
        assert result.document.category == "אחר"

    def test_warranty_from_raw_text(self, alice):
        repo, sync = alice
        data = "purchase date: 28/10/2025".encode("utf-8")
        doc = upload_file(repo, "תעודת_אחריות_מקרר.txt", data).document
        assert doc.category == "אחריות"
        assert doc.warranty_start == "2025-10-28"
        assert doc.warranty_expires_at == "2026-10-28"
        assert doc.auto_delete_after == "2032-10-28"

    def test_warranty_from_pdf_text_layer(self, alice):
        repo, sync = alice
        data = make_pdf("Invoice date: 15/03/2024")
        doc = upload_file(repo, "אחריות_תנור.pdf", data).document
        assert doc.warranty_start == "2024-03-15"

    def test_warranty_from_image_ocr(self, alice):
        repo, sync = alice
        ocr = FakeOCR("תאריך רכישה: 01.02.2024")
        doc = upload_file(repo, "אחריות_מזגן.png", b"\x89PNG fake", ocr=ocr).document
        assert ocr.calls == ["image/png"]
        assert doc.warranty_start == "2024-02-01"

    def test_scanned_pdf_falls_back_to_ocr(self, alice):
        repo, sync = alice
        ocr = FakeOCR("purchase date: 28/10/2025")
        doc = upload_file(repo, "אחריות_סורק.pdf", make_pdf(""), ocr=ocr).document
        assert ocr.calls == ["image/png"]
        assert doc.warranty_start == "2025-10-28"

    def test_manual_warranty_when_nothing_found(self, alice):
        repo, sync = alice
        doc = upload_file(
            repo, "אחריות.txt", b"no dates here",
            ask_warranty=lambda: ("01/02/2024", ""),
        ).document
        assert doc.warranty_start == "2024-02-01"
        assert doc.auto_delete_after == "2031-02-01"

    def test_synced_when_remote_available(self, alice, backend):
        repo, sync = alice
        result = upload_file(repo, "passport_scan.pdf", b"x", sync=sync)
        assert result.synced is True
        assert backend.get("documents", result.document.id)["category"] == "תעודות"

    def test_not_synced_offline(self, alice, backend):
        repo, sync = alice
        backend.online = False
        result = upload_file(repo, "passport_scan.pdf", b"x", sync=sync)
        assert result.synced is False
        assert repo.find(result.document.id) is not None

    def test_requires_login(self, user_store, file_cache):
        repo = DocumentRepository(user_store, file_cache)
        with pytest.raises(NotAuthenticatedError):
            upload_file(repo, "a.pdf", b"x")


class TestUploadPath:

    def test_reads_file_from_disk(self, alice, temp_dir):
        repo, sync = alice
        path = os.path.join(temp_dir, "הסכם_שכירות.txt")
        with open(path, "wb") as f:
            f.write(b"contract")

        doc = upload_path(repo, path).document
        assert doc.original_file_name == "הסכם_שכירות.txt"
        assert doc.category == "בית"
        assert doc.file_size == len(b"contract")
