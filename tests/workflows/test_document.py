"""Tests for Document records and hand edits."""

import pytest

from conftest import ALICE, BOB
from main import parse_edit
from workflows import Document, OTHER_CATEGORY, edit_patch


class TestEditPatch:

    def test_text_fields(self):
        patch = edit_patch({"title": " חשבון חשמל ", "org": "חברת החשמל", "year": "2023"})
        assert patch == {"title": "חשבון חשמל", "org": "חברת החשמל", "year": "2023"}

    def test_blank_title_kept(self):
        assert edit_patch({"title": "  "}) == {}

    def test_blank_category_is_other(self):
        assert edit_patch({"category": ""}) == {"category": OTHER_CATEGORY}

    def test_lists_split_on_commas(self):
        patch = edit_patch({"recipient": "דנה, יוסי,,", "sharedWith": "Bob@Example.com"})
        assert patch == {"recipient": ["דנה", "יוסי"], "shared_with": ["Bob@Example.com"]}

    def test_blank_dates_cleared(self):
        patch = edit_patch({"warrantyStart": "2024-03-01", "autoDeleteAfter": ""})
        assert patch == {"warranty_start": "2024-03-01", "auto_delete_after": None}

    def test_unknown_field(self):
        with pytest.raises(ValueError):
            edit_patch({"owner": BOB})


class TestEditCommand:

    def test_parse_pairs(self):
        doc_id, values = parse_edit(["abc", "org=Leumi", "title=a=b", "recipient="])
        assert doc_id == "abc"
        assert values == {"org": "Leumi", "title": "a=b", "recipient": ""}

    def test_parse_rejects_bare_word(self):
        with pytest.raises(ValueError):
            parse_edit(["abc", "org"])

    def test_edit_mirrors_to_remote(self, alice, backend):
        repo, sync = alice
        doc = repo.add(Document.create("receipt.pdf", owner=ALICE))

        doc_id, values = parse_edit([doc.id, "category=אחריות", "sharedWith=Bob@Example.com"])
        updated = repo.update(doc_id, edit_patch(values))

        assert updated.category == "אחריות"
        assert updated.shared_with == [BOB]
        record = backend.get("documents", doc.id)
        assert record["category"] == "אחריות"
        assert record["sharedWith"] == [BOB]
