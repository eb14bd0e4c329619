#!/usr/bin/env python3
"""DocArchive - Personal document archive with warranty tracking and sharing."""

import argparse
import sys
import time
from typing import Dict, List, Tuple

from docarchive import DocArchive, __version__
from remote import RemoteError
from workflows import (
    ArchiveError,
    CATEGORIES,
    Document,
    DocumentRepository,
    ShareService,
    SyncEngine,
    edit_patch,
    sort_documents,
    upload_path,
)


def open_archive() -> Tuple[DocumentRepository, SyncEngine, ShareService]:
    """Open local stores and the remote store for the current user."""
    user = DocArchive.current_user()
    if not user:
        print("Error: no user")
        print("Use --user EMAIL or set DOCARCHIVE_USER")
        sys.exit(1)

    DocArchive.init_resources()
    repository = DocumentRepository(DocArchive.user_store, DocArchive.file_cache)
    repository.open(user)

    sync = SyncEngine(DocArchive.backend, repository, DocArchive.blob_store)
    sync.attach()
    return repository, sync, ShareService(sync)


def print_documents(docs: List[Document]) -> None:
    if not docs:
        print("No documents")
        return
    for doc in docs:
        doc.display(DocArchive.notify)


def ask_category(categories: List[str]) -> str:
    print("Could not guess a category. Choose one:")
    for i, name in enumerate(categories, 1):
        print(f"  {i}. {name}")
    answer = input("Category number (Enter to skip): ").strip()
    if answer.isdigit() and 1 <= int(answer) <= len(categories):
        return categories[int(answer) - 1]
    return ""


def ask_warranty() -> Tuple[str, str]:
    print("No warranty dates found in the file.")
    start = input("Purchase date (YYYY-MM-DD, Enter to skip): ").strip()
    expires = input("Warranty until (YYYY-MM-DD, Enter to skip): ").strip()
    return start, expires


def parse_sort(value: str) -> Tuple[str, str]:
    """"uploadedAt-desc" -> ("uploadedAt", "desc")"""
    field, _, direction = value.partition("-")
    return field or "uploadedAt", direction if direction in ("asc", "desc") else "desc"


def parse_edit(items: List[str]) -> Tuple[str, Dict[str, str]]:
    """["ID", "org=Leumi", "year=2023"] -> ("ID", {"org": "Leumi", "year": "2023"})"""
    doc_id, *pairs = items
    values = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise ValueError(f"Expected FIELD=VALUE, got {pair!r}")
        values[key.strip()] = value
    return doc_id, values


def run_watch(repository: DocumentRepository, sync: SyncEngine, sharing: ShareService) -> None:
    """Stay subscribed and print every change until interrupted."""

    def on_documents(docs: List[Document]) -> None:
        DocArchive.notify(f"{len([d for d in docs if not d.trashed])} document(s)")

    def on_invites(invites) -> None:
        for invite in invites:
            DocArchive.notify(
                f"Invite {invite.id}: {invite.from_email} shared [bold]{invite.folder_name}[/bold]"
            )

    sync.boot(on_documents)
    if not sharing.watch_pending_invites(on_invites):
        print("Remote store unavailable; nothing to watch")
        return

    print("Watching for changes (Ctrl+C to stop)...")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass


def run_command(args: argparse.Namespace) -> None:
    repository, sync, sharing = open_archive()
    me = repository.require_user()
    DocArchive.log(f"User: {me}")
    DocArchive.log(f"Remote: {DocArchive.backend.display_name}")
    if DocArchive.blob_store:
        DocArchive.log(f"Storage: {DocArchive.blob_store.display_name}")

    try:
        if args.watch:
            run_watch(repository, sync, sharing)
            return

        sync.boot()

        if args.upload:
            result = upload_path(
                repository, args.upload,
                ocr=DocArchive.ocr,
                sync=sync,
                choose_category=ask_category,
                ask_warranty=ask_warranty,
            )
            if result.document:
                result.document.display(DocArchive.notify)

        elif args.list is not None:
            field, direction = parse_sort(args.sort)
            if args.list:
                docs = sort_documents(repository.in_category(args.list), field, direction)
            else:
                docs = repository.sorted(field, direction)
            print_documents(docs)
            counts = repository.counts_by_category()
            print("  ".join(f"{c}: {counts[c]}" for c in CATEGORIES if counts.get(c)))

        elif args.trash:
            print_documents(repository.trashed())

        elif args.trash_doc:
            print("Moved to trash" if repository.soft_delete(args.trash_doc) else "Not found")

        elif args.restore:
            print("Restored" if repository.restore(args.restore) else "Not found")

        elif args.delete:
            print("Deleted" if repository.hard_delete(args.delete) else "Not found")

        elif args.edit:
            try:
                doc_id, values = parse_edit(args.edit)
                patch = edit_patch(values)
            except ValueError as e:
                print(f"Error: {e}")
                return
            updated = repository.update(doc_id, patch)
            if updated is None:
                print("Not found")
            else:
                DocArchive.notify("Document updated")
                updated.display(DocArchive.notify)

        elif args.purge:
            print("Expired documents removed" if repository.purge_expired() else "Nothing to purge")

        elif args.sync:
            synced, failed = sync.sync_local_to_cloud()
            shared = sharing.sync_my_shared_docs()
            print(f"Synced {synced}, failed {failed}, folder mirrors {shared}")

        elif args.share:
            if not args.to:
                print("Error: --share requires --to EMAIL")
                return
            shared_with = sync.share_document(args.share, args.to)
            print(f"Shared with: {', '.join(shared_with)}")

        elif args.create_folder:
            folder = sharing.create_folder(args.create_folder)
            print(f"Created folder {folder.name} ({folder.id})")

        elif args.invite:
            folder = sharing.get_folder(args.folder) if args.folder else None
            if folder is None:
                print("Error: --invite requires --folder ID of one of your folders")
                return
            sent = sharing.send_invite(me, args.invite, folder.id, folder.name)
            print("Invite sent" if sent else "Could not send invite")

        elif args.invites:
            invites = sharing.list_pending_invites()
            if not invites:
                print("No pending invites")
            for invite in invites:
                print(f"{invite.id}  {invite.folder_name}  from {invite.from_email}")

        elif args.accept or args.reject:
            invite_id = args.accept or args.reject
            done = sharing.respond_to_invite(invite_id, accept=bool(args.accept))
            print("Done" if done else "Invite not pending")

        elif args.reconcile:
            state = sharing.reconcile_folder(args.reconcile)
            print(f"Folder {state.folder.name}: {', '.join(state.members)}")
            print_documents(state.documents)

        else:
            print_documents(repository.sorted(*parse_sort(args.sort)))

    except (ArchiveError, RemoteError) as e:
        DocArchive.notify(str(e), error=True)
        sys.exit(1)
    finally:
        repository.close()
        DocArchive.close()


def auth_dropbox() -> None:
    from storage.dbx import authenticate_dropbox

    print("=== Dropbox Authentication Setup ===")
    print()
    print("You need your Dropbox app credentials.")
    print("If you don't have an app yet, create one at: https://www.dropbox.com/developers/apps")
    print()
    print("App settings required:")
    print("  - Permission type: Scoped access")
    print("  - Permissions: files.content.read, files.content.write, sharing.write")
    print()

    app_key = input("Enter your App key: ").strip()
    app_secret = input("Enter your App secret: ").strip()

    if not app_key or not app_secret:
        print("Error: App key and secret are required")
    else:
        authenticate_dropbox(app_key, app_secret)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=f"Document archive v{__version__}")
    parser.add_argument("--user", type=str,
                        help="Log in as EMAIL (or set DOCARCHIVE_USER)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Print debug log lines")
    parser.add_argument("--upload", type=str, metavar="FILE",
                        help="Add a file to the archive")
    parser.add_argument("--list", nargs="?", const="", metavar="CATEGORY",
                        help="List documents, optionally in one category")
    parser.add_argument("--sort", type=str, default="uploadedAt-desc",
                        help="Sort as FIELD-DIR, e.g. year-asc (default uploadedAt-desc)")
    parser.add_argument("--trash", action="store_true",
                        help="List documents in the trash")
    parser.add_argument("--trash-doc", type=str, metavar="ID",
                        help="Move a document to the trash")
    parser.add_argument("--restore", type=str, metavar="ID",
                        help="Restore a document from the trash")
    parser.add_argument("--delete", type=str, metavar="ID",
                        help="Delete a document permanently")
    parser.add_argument("--edit", type=str, nargs="+", metavar="ARG",
                        help="Edit a document: ID FIELD=VALUE ... (fields: title, org, year, "
                             "recipient, category, warrantyStart, warrantyExpiresAt, "
                             "autoDeleteAfter, sharedWith)")
    parser.add_argument("--purge", action="store_true",
                        help="Remove warranty documents past their auto-delete date")
    parser.add_argument("--sync", action="store_true",
                        help="Upload local-only files and refresh folder mirrors")
    parser.add_argument("--share", type=str, metavar="ID",
                        help="Share a document (use with --to)")
    parser.add_argument("--to", type=str, nargs="+", metavar="EMAIL",
                        help="Recipients for --share")
    parser.add_argument("--create-folder", type=str, metavar="NAME",
                        help="Create a shared folder")
    parser.add_argument("--invite", type=str, metavar="EMAIL",
                        help="Invite a user to a folder (use with --folder)")
    parser.add_argument("--folder", type=str, metavar="ID",
                        help="Folder id for --invite")
    parser.add_argument("--invites", action="store_true",
                        help="List pending invites")
    parser.add_argument("--accept", type=str, metavar="ID",
                        help="Accept an invite")
    parser.add_argument("--reject", type=str, metavar="ID",
                        help="Reject an invite")
    parser.add_argument("--reconcile", type=str, metavar="ID",
                        help="Reconcile members and documents of a shared folder")
    parser.add_argument("--watch", action="store_true",
                        help="Stay connected and print live changes")
    parser.add_argument("--auth-dropbox", action="store_true",
                        help="Authenticate with Dropbox (one-time setup)")
    args = parser.parse_args()

    # Handle --auth-dropbox first (doesn't need a user)
    if args.auth_dropbox:
        auth_dropbox()
        sys.exit(0)

    DocArchive.configure(args)
    run_command(args)
