"""Shared fixtures: temp SQLite stores and an in-memory remote store."""

import os
import shutil
import tempfile

import pytest

from docarchive import DocArchive
from remote import MemoryBackend
from workflows import DocumentRepository, FileCache, UserStore, SyncEngine

ALICE = "alice@example.com"
BOB = "bob@example.com"


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    dir_path = tempfile.mkdtemp(prefix="docarchive_test_")
    yield dir_path
    # Cleanup
    shutil.rmtree(dir_path, ignore_errors=True)


@pytest.fixture
def db_path(temp_dir):
    return os.path.join(temp_dir, "archive.db")


@pytest.fixture
def user_store(db_path):
    store = UserStore(db_path)
    yield store
    store.close()


@pytest.fixture
def file_cache(db_path):
    cache = FileCache(db_path)
    yield cache
    cache.close()


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture(autouse=True)
def quiet_app():
    """Keep DocArchive output routing isolated between tests."""
    DocArchive._app = None
    DocArchive.verbose = False
    yield
    DocArchive._app = None


def open_session(email, backend, user_store, file_cache, blob_store=None):
    """Repository + attached sync engine for one user."""
    repo = DocumentRepository(user_store, file_cache)
    repo.open(email)
    sync = SyncEngine(backend, repo, blob_store)
    sync.attach()
    return repo, sync


@pytest.fixture
def alice(backend, user_store, file_cache):
    repo, sync = open_session(ALICE, backend, user_store, file_cache)
    yield repo, sync
    repo.close()


@pytest.fixture
def bob(backend, user_store, file_cache):
    repo, sync = open_session(BOB, backend, user_store, file_cache)
    yield repo, sync
    repo.close()


class RecordingApp:
    """Front end stand-in that keeps log lines and notifications."""

    def __init__(self):
        self.logs = []
        self.notices = []

    def add_log(self, message):
        self.logs.append(message)

    def show_notification(self, message, error=False):
        self.notices.append((message, error))

    @property
    def errors(self):
        return [message for message, error in self.notices if error]


@pytest.fixture
def app():
    recorder = RecordingApp()
    DocArchive.set_app(recorder)
    return recorder
