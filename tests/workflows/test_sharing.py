"""Tests for shared folders and invites."""

import pytest

from conftest import ALICE, BOB
from remote import get_path
from workflows import Document, FolderNotFoundError, PermissionDeniedError, ShareService
from workflows.sharing import shared_doc_key


@pytest.fixture
def alice_share(alice):
    repo, sync = alice
    return ShareService(sync)


@pytest.fixture
def bob_share(bob):
    repo, sync = bob
    return ShareService(sync)


@pytest.fixture
def folder(alice_share):
    return alice_share.create_folder("משפחה")


def invite_bob(alice_share, bob_share, folder):
    assert alice_share.send_invite(ALICE, BOB, folder.id, folder.name) is True
    invites = bob_share.list_pending_invites()
    assert len(invites) == 1
    return invites[0]


class TestFolders:

    def test_create_folder(self, alice_share, folder, backend):
        assert folder.owner == ALICE
        assert folder.members == [ALICE]
        assert [f.id for f in alice_share.list_folders()] == [folder.id]
        remote = backend.get("users", ALICE)
        assert remote["sharedFolders"][folder.id]["name"] == "משפחה"

    def test_create_requires_name(self, alice_share):
        with pytest.raises(ValueError):
            alice_share.create_folder("  ")

    def test_rename(self, alice_share, folder, backend):
        assert alice_share.rename_folder(folder.id, "בית הורים") is True
        assert alice_share.get_folder(folder.id).name == "בית הורים"
        assert backend.get("users", ALICE)["sharedFolders"][folder.id]["name"] == "בית הורים"

    def test_delete_untags_documents(self, alice, alice_share, folder, backend):
        repo, sync = alice
        doc = repo.add(Document.create("a.pdf", owner=ALICE))
        alice_share.assign_to_folder(doc.id, folder.id)
        assert backend.get("sharedDocs", shared_doc_key(ALICE, doc.id)) is not None

        assert alice_share.delete_folder(folder.id) is True
        assert alice_share.get_folder(folder.id) is None
        assert repo.find(doc.id).shared_folder_id is None
        assert backend.get("sharedDocs", shared_doc_key(ALICE, doc.id)) is None
        assert folder.id not in backend.get("users", ALICE)["sharedFolders"]
        assert alice_share.delete_folder(folder.id) is False


class TestInvites:

    def test_accept_joins_both_records(self, alice_share, bob_share, folder, backend):
        invite = invite_bob(alice_share, bob_share, folder)
        assert invite.from_email == ALICE
        assert invite.folder_name == "משפחה"

        assert bob_share.respond_to_invite(invite.id, accept=True) is True
        for email in (ALICE, BOB):
            members = get_path(backend.get("users", email), f"sharedFolders.{folder.id}.members")
            assert members == [ALICE, BOB]
        assert bob_share.get_folder(folder.id).members == [ALICE, BOB]
        assert bob_share.list_pending_invites() == []

    def test_second_response_is_noop(self, alice_share, bob_share, folder, backend):
        invite = invite_bob(alice_share, bob_share, folder)
        assert bob_share.respond_to_invite(invite.id, accept=False) is True
        assert bob_share.respond_to_invite(invite.id, accept=True) is False
        assert backend.get("shareInvites", invite.id)["status"] == "rejected"
        assert bob_share.get_folder(folder.id) is None

    def test_only_target_may_respond(self, alice_share, bob_share, folder):
        invite = invite_bob(alice_share, bob_share, folder)
        with pytest.raises(PermissionDeniedError):
            alice_share.respond_to_invite(invite.id, accept=True)

    def test_unknown_invite(self, bob_share):
        assert bob_share.respond_to_invite("missing", accept=True) is False

    def test_self_invite_refused(self, alice_share, folder):
        assert alice_share.send_invite(ALICE, " Alice@Example.com", folder.id, folder.name) is False

    def test_watch_pending_invites(self, alice_share, bob_share, folder):
        seen = []
        assert bob_share.watch_pending_invites(seen.append) is True
        alice_share.send_invite(ALICE, BOB, folder.id, folder.name)
        assert [i.to_email for i in seen[-1]] == [BOB]


class TestOfflineInvites:

    def test_unknown_target_refused(self, alice_share, folder, backend):
        backend.online = False
        assert alice_share.send_invite(ALICE, "stranger@example.com", folder.id, folder.name) is False

    def test_queued_and_accepted_locally(self, alice_share, bob_share, folder, backend, user_store):
        backend.online = False
        user_store.ensure(BOB)

        assert alice_share.send_invite(ALICE, BOB, folder.id, folder.name) is True
        assert len(user_store.get(ALICE).outgoing_share_requests) == 1
        invite = bob_share.list_pending_invites()[0]

        assert bob_share.respond_to_invite(invite.id, accept=True) is True
        assert bob_share.respond_to_invite(invite.id, accept=True) is False
        assert user_store.get(ALICE).shared_folders[folder.id].members == [ALICE, BOB]
        assert user_store.get(BOB).shared_folders[folder.id].owner == ALICE
        assert user_store.get(ALICE).outgoing_share_requests[0].status == "accepted"


class TestFolderDocuments:

    def test_assign_requires_owner(self, alice, alice_share, bob_share, folder):
        repo, sync = alice
        doc = repo.add(Document.create("a.pdf", owner=ALICE))
        # Bob holds a copy of Alice's document
        bob_share.repository.add(doc.with_changes(), mirror=False)
        with pytest.raises(PermissionDeniedError):
            bob_share.assign_to_folder(doc.id, folder.id)

    def test_assign_unknown_folder(self, alice, alice_share):
        repo, sync = alice
        doc = repo.add(Document.create("a.pdf", owner=ALICE))
        with pytest.raises(FolderNotFoundError):
            alice_share.assign_to_folder(doc.id, "nope")

    def test_members_see_folder_documents(self, alice, alice_share, bob_share, folder):
        repo, sync = alice
        doc = repo.add(Document.create("קבלה_מקרר.pdf", "אחריות", owner=ALICE))
        alice_share.assign_to_folder(doc.id, folder.id)
        invite = invite_bob(alice_share, bob_share, folder)
        bob_share.respond_to_invite(invite.id, accept=True)

        docs = bob_share.fetch_shared_folder_docs(folder.id)
        assert [(d.id, d.owner, d.shared_folder_id) for d in docs] == [(doc.id, ALICE, folder.id)]
        assert docs[0].title == "קבלה_מקרר.pdf"

    def test_offline_folder_documents_from_local_records(self, alice, alice_share, folder, backend):
        repo, sync = alice
        backend.online = False
        doc = repo.add(Document.create("a.pdf", owner=ALICE))
        alice_share.assign_to_folder(doc.id, folder.id)
        assert [d.id for d in alice_share.fetch_shared_folder_docs(folder.id)] == [doc.id]

    def test_watch_and_leave(self, alice, alice_share, folder, backend):
        repo, sync = alice
        seen = []
        assert alice_share.watch_shared_folder_docs(folder.id, seen.append) is True
        assert alice_share.watch_folder_members(ALICE, folder.id, seen.append) is True
        doc = repo.add(Document.create("a.pdf", owner=ALICE))
        alice_share.assign_to_folder(doc.id, folder.id)
        assert any(isinstance(item, list) and item and isinstance(item[0], Document) for item in seen)

        alice_share.leave_folder_view()
        assert backend.listener_count == 0


class TestReconcile:

    def test_reconcile_is_idempotent(self, alice, alice_share, bob_share, folder, backend):
        repo, sync = alice
        kept = repo.add(Document.create("kept.pdf", owner=ALICE))
        dropped = repo.add(Document.create("dropped.pdf", owner=ALICE))
        alice_share.assign_to_folder(kept.id, folder.id)
        alice_share.assign_to_folder(dropped.id, folder.id)
        # Untagged without touching the remote store
        repo.update(dropped.id, {"shared_folder_id": None}, mirror=False)

        invite = invite_bob(alice_share, bob_share, folder)
        bob_share.respond_to_invite(invite.id, accept=True)

        first = alice_share.reconcile_folder(folder.id)
        second = alice_share.reconcile_folder(folder.id)

        assert first.members == [ALICE, BOB]
        assert [d.id for d in first.documents] == [kept.id]
        assert second.members == first.members
        assert [d.id for d in second.documents] == [d.id for d in first.documents]
        assert backend.get("sharedDocs", shared_doc_key(ALICE, dropped.id)) is None

    def test_member_view_catches_up(self, alice_share, bob_share, folder, user_store):
        invite = invite_bob(alice_share, bob_share, folder)
        bob_share.respond_to_invite(invite.id, accept=True)

        # Bob's local view lost a member; the owner's record is authoritative
        record = user_store.get(BOB)
        record.shared_folders[folder.id].members = [ALICE]
        user_store.save(record)

        state = bob_share.reconcile_folder(folder.id)
        assert state.members == [ALICE, BOB]

    def test_unknown_folder(self, bob_share):
        with pytest.raises(FolderNotFoundError):
            bob_share.reconcile_folder("nope")
