"""Tests for DocumentRepository (no remote store attached)."""

import datetime

import pytest

from workflows import Document, DocumentRepository, NotAuthenticatedError, sort_documents
from workflows.local_store import to_data_url
from workflows.subscriptions import Subscriptions, DOCUMENTS

ME = "dana@example.com"


@pytest.fixture
def repo(user_store, file_cache):
    repository = DocumentRepository(user_store, file_cache)
    repository.open(ME)
    yield repository
    repository.close()


def make_doc(doc_id, **kwargs):
    kwargs.setdefault("owner", ME)
    kwargs.setdefault("title", doc_id)
    return Document(id=doc_id, original_file_name=f"{doc_id}.pdf", **kwargs)


class FakeSource:
    """Stands in for the sync engine in load()."""

    def __init__(self, owned=None, shared=None, available=True, error=None):
        self.owned = owned or []
        self.shared = shared or []
        self.available = available
        self.error = error

    def is_available(self):
        return self.available

    def fetch_owned_and_shared(self):
        if self.error:
            raise self.error
        return self.owned, self.shared


class TestLifecycle:

    def test_requires_user(self, user_store, file_cache):
        repository = DocumentRepository(user_store, file_cache)
        with pytest.raises(NotAuthenticatedError):
            repository.require_user()
        with pytest.raises(NotAuthenticatedError):
            repository.add(make_doc("1"))

    def test_open_loads_snapshot(self, repo, user_store, file_cache):
        repo.add(make_doc("1"))
        other = DocumentRepository(user_store, file_cache)
        assert [d.id for d in other.open(ME)] == ["1"]

    def test_close_cancels_listeners(self, repo):
        cancelled = []
        repo.subscriptions.replace(DOCUMENTS, lambda: cancelled.append(1))
        repo.close()
        assert cancelled == [1]
        assert repo.is_open is False


class TestLoad:

    def test_owned_then_shared_deduplicated(self, repo):
        source = FakeSource(owned=[make_doc("1")], shared=[make_doc("1"), make_doc("2")])
        assert [d.id for d in repo.load(source)] == ["1", "2"]

    def test_keeps_local_file_flag(self, repo):
        repo.add(make_doc("1", has_file=True))
        docs = repo.load(FakeSource(owned=[make_doc("1")]))
        assert docs[0].has_file is True

    def test_unavailable_uses_snapshot(self, repo):
        repo.add(make_doc("local"))
        docs = repo.load(FakeSource(owned=[make_doc("remote")], available=False))
        assert [d.id for d in docs] == ["local"]

    def test_fetch_error_uses_snapshot(self, repo):
        repo.add(make_doc("local"))
        docs = repo.load(FakeSource(error=RuntimeError("boom")))
        assert [d.id for d in docs] == ["local"]


class TestMutations:

    def test_duplicate_filename(self, repo):
        repo.add(make_doc("a"))
        assert repo.is_duplicate("a.pdf") is True
        assert repo.is_duplicate(" a.pdf ") is True
        assert repo.is_duplicate("b.pdf") is False

    def test_trashed_is_not_duplicate(self, repo):
        repo.add(make_doc("a"))
        repo.soft_delete("a")
        assert repo.is_duplicate("a.pdf") is False

    def test_update_merges(self, repo):
        repo.add(make_doc("a", category="בית"))
        updated = repo.update("a", {"title": "חוזה"})
        assert updated.title == "חוזה"
        assert updated.category == "בית"
        assert repo.update("missing", {"title": "x"}) is None

    def test_soft_delete_and_restore(self, repo):
        repo.add(make_doc("a"))
        assert repo.soft_delete("a") is True
        assert repo.documents() == []
        assert [d.id for d in repo.trashed()] == ["a"]
        assert repo.find("a").deleted_by == ME

        assert repo.restore("a") is True
        assert [d.id for d in repo.documents()] == ["a"]
        assert repo.find("a").deleted_at is None

    def test_hard_delete_drops_bytes(self, repo, file_cache):
        repo.add(make_doc("a"))
        file_cache.put("a", to_data_url(b"x"))
        assert repo.hard_delete("a") is True
        assert repo.find("a") is None
        assert file_cache.exists("a") is False
        assert repo.hard_delete("a") is False

    def test_hooks_called_and_failures_swallowed(self, repo):
        saved = []
        repo.on_saved = saved.append

        def broken(doc):
            raise RuntimeError("remote down")

        repo.on_removed = broken
        repo.add(make_doc("a"))
        repo.add(make_doc("b"), mirror=False)
        assert [d.id for d in saved] == ["a"]
        assert repo.hard_delete("a") is True

    def test_merge_remote_remote_wins(self, repo):
        repo.add(make_doc("5", title="v0", has_file=True))
        repo.merge_remote([make_doc("5", title="v1")])
        repo.merge_remote([make_doc("5", title="v2")])
        doc = repo.find("5")
        assert doc.title == "v2"
        assert doc.has_file is True


class TestPurge:

    def test_expired_removed_with_bytes(self, repo, file_cache):
        today = datetime.date.today()
        yesterday = (today - datetime.timedelta(days=1)).isoformat()
        tomorrow = (today + datetime.timedelta(days=1)).isoformat()

        repo.add(make_doc("old", category="אחריות", auto_delete_after=yesterday))
        repo.add(make_doc("new", category="אחריות", auto_delete_after=tomorrow))
        repo.add(make_doc("plain", category="בית", auto_delete_after=yesterday))
        file_cache.put("old", to_data_url(b"x"))

        assert repo.purge_expired() is True
        assert sorted(d.id for d in repo.all()) == ["new", "plain"]
        assert file_cache.exists("old") is False

    def test_boundary_is_midnight(self, repo):
        repo.add(make_doc("w", category="אחריות", auto_delete_after="2030-01-01"))
        assert repo.purge_expired(now=datetime.datetime(2030, 1, 1, 0, 0, 0)) is False
        assert repo.purge_expired(now=datetime.datetime(2030, 1, 1, 0, 0, 1)) is True

    def test_nothing_to_purge(self, repo):
        assert repo.purge_expired() is False


class TestSorting:

    def test_dates_numeric_and_missing(self):
        docs = [
            make_doc("iso", uploaded_at="2024-01-01"),
            make_doc("none"),
            make_doc("ms", uploaded_at=int(datetime.datetime(2025, 1, 1).timestamp() * 1000)),
        ]
        assert [d.id for d in sort_documents(docs, "uploadedAt", "desc")] == ["ms", "iso", "none"]
        assert [d.id for d in sort_documents(docs, "uploadedAt", "asc")] == ["none", "iso", "ms"]

    def test_year_as_number(self):
        docs = [make_doc("a", year="2023"), make_doc("b", year="999"), make_doc("c", year="")]
        assert [d.id for d in sort_documents(docs, "year", "asc")] == ["c", "b", "a"]

    def test_text_case_insensitive(self):
        docs = [make_doc("1", title="beta"), make_doc("2", title="Alpha")]
        assert [d.id for d in sort_documents(docs, "title", "asc")] == ["2", "1"]

    def test_filters(self, repo):
        repo.add(make_doc("a", category="בית", shared_folder_id="f1"))
        repo.add(make_doc("b", category="רפואה"))
        repo.add(make_doc("c", category="בית", shared_folder_id="f1"))
        repo.soft_delete("c")
        assert [d.id for d in repo.in_category("בית")] == ["a"]
        assert [d.id for d in repo.in_shared_folder("f1")] == ["a"]

    def test_counts_by_category(self, repo):
        repo.add(make_doc("a", category="בית"))
        repo.add(make_doc("b", category="בית"))
        repo.add(make_doc("c", category="רפואה"))
        assert repo.counts_by_category() == {"בית": 2, "רפואה": 1}


class TestSubscriptions:

    def test_replace_cancels_previous(self):
        subs = Subscriptions()
        calls = []
        subs.replace("k", lambda: calls.append("first-a"), lambda: calls.append("first-b"))
        subs.replace("k", lambda: calls.append("second"))
        assert calls == ["first-a", "first-b"]
        subs.cancel_all()
        assert calls == ["first-a", "first-b", "second"]
        assert subs.is_active("k") is False

    def test_cancel_unknown_kind(self):
        Subscriptions().cancel("nothing")
