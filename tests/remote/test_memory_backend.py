"""Tests for MemoryBackend and the backend factory."""

import pytest

from remote import (
    ARRAY_CONTAINS,
    DELETE_FIELD,
    EQ,
    MemoryBackend,
    OfflineBackend,
    Query,
    RemoteError,
    RemoteUnavailable,
    create_backend,
)


class TestRecords:

    def test_set_get_copies(self, backend):
        data = {"tags": ["a"]}
        backend.set("docs", "1", data)
        data["tags"].append("b")
        record = backend.get("docs", "1")
        assert record == {"tags": ["a"]}
        record["tags"].append("c")
        assert backend.get("docs", "1") == {"tags": ["a"]}

    def test_get_missing(self, backend):
        assert backend.get("docs", "nope") is None

    def test_merge_is_deep(self, backend):
        backend.set("users", "u", {"sharedFolders": {"f": {"name": "x", "members": ["a"]}}})
        backend.set("users", "u", {"sharedFolders": {"f": {"name": "y"}}}, merge=True)
        assert backend.get("users", "u") == {"sharedFolders": {"f": {"name": "y", "members": ["a"]}}}

    def test_set_without_merge_replaces(self, backend):
        backend.set("docs", "1", {"a": 1, "b": 2})
        backend.set("docs", "1", {"a": 3})
        assert backend.get("docs", "1") == {"a": 3}

    def test_update_dotted_path(self, backend):
        backend.set("users", "u", {"email": "u"})
        backend.update("users", "u", {"sharedFolders.f.name": "x"})
        assert backend.get("users", "u")["sharedFolders"] == {"f": {"name": "x"}}

    def test_update_delete_field_removes_key(self, backend):
        backend.set("users", "u", {"sharedFolders": {"f": {"name": "x"}, "g": {"name": "y"}}})
        backend.update("users", "u", {"sharedFolders.f": DELETE_FIELD})
        assert backend.get("users", "u")["sharedFolders"] == {"g": {"name": "y"}}

    def test_update_missing_raises(self, backend):
        with pytest.raises(RemoteError):
            backend.update("docs", "nope", {"a": 1})

    def test_add_generates_key(self, backend):
        key = backend.add("invites", {"to": "b"})
        assert backend.get("invites", key) == {"to": "b"}

    def test_array_union(self, backend):
        backend.array_union("users", "u", "sharedFolders.f.members", "a", "b")
        backend.array_union("users", "u", "sharedFolders.f.members", "b", "c")
        assert backend.get("users", "u")["sharedFolders"]["f"]["members"] == ["a", "b", "c"]

    def test_delete_missing_is_noop(self, backend):
        backend.delete("docs", "nope")


class TestQueries:

    def test_fetch_filters_and_adds_id(self, backend):
        backend.set("docs", "1", {"owner": "a", "sharedWith": ["b"]})
        backend.set("docs", "2", {"owner": "b", "sharedWith": []})
        assert backend.fetch(Query.on("docs", ("owner", EQ, "a"))) == [
            {"owner": "a", "sharedWith": ["b"], "id": "1"}
        ]
        shared = backend.fetch(Query.on("docs", ("sharedWith", ARRAY_CONTAINS, "b")))
        assert [r["id"] for r in shared] == ["1"]

    def test_conditions_are_conjunctive(self, backend):
        backend.set("docs", "1", {"owner": "a", "category": "x"})
        backend.set("docs", "2", {"owner": "a", "category": "y"})
        result = backend.fetch(Query.on("docs", ("owner", EQ, "a"), ("category", EQ, "y")))
        assert [r["id"] for r in result] == ["2"]


class TestListeners:

    def test_initial_delivery_and_updates(self, backend):
        seen = []
        cancel = backend.subscribe(Query.on("docs", ("owner", EQ, "a")), seen.append)
        backend.set("docs", "1", {"owner": "a"})
        backend.set("other", "1", {"owner": "a"})
        assert seen == [[], [{"owner": "a", "id": "1"}]]

        cancel()
        backend.set("docs", "2", {"owner": "a"})
        assert len(seen) == 2
        assert backend.listener_count == 0

    def test_document_listener(self, backend):
        seen = []
        backend.subscribe_document("users", "u", seen.append)
        backend.set("users", "v", {"x": 1})
        backend.set("users", "u", {"x": 2})
        backend.delete("users", "u")
        assert seen == [None, {"x": 2}, None]


class TestAvailability:

    def test_offline_memory_backend_raises(self, backend):
        backend.online = False
        assert backend.available is False
        with pytest.raises(RemoteUnavailable):
            backend.get("docs", "1")
        with pytest.raises(RemoteUnavailable):
            backend.subscribe(Query.on("docs"), lambda records: None)

    def test_offline_backend(self):
        offline = OfflineBackend()
        assert offline.available is False
        with pytest.raises(RemoteUnavailable):
            offline.fetch(Query.on("docs"))


class TestFactory:

    def test_memory(self):
        assert isinstance(create_backend("memory:"), MemoryBackend)

    def test_offline(self):
        assert isinstance(create_backend("offline:"), OfflineBackend)
        assert isinstance(create_backend(""), OfflineBackend)

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_backend("mongo:x")
