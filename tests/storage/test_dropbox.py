"""Smoke tests for DropboxBlobStore.

These tests require:
1. A dropbox_token.json file in project root (see main.py --auth-dropbox)

Tests are skipped if credentials are not available. They write under
/docarchive-smoke and clean up after themselves.
"""

import os
import uuid
import pytest

# Skip all tests if no credentials
pytestmark = pytest.mark.skipif(
    not os.path.exists("dropbox_token.json"),
    reason="No dropbox_token.json found"
)


@pytest.fixture
def store():
    """Create a DropboxBlobStore rooted at a scratch folder."""
    from storage.dbx import DropboxBlobStore
    return DropboxBlobStore(root_path="/docarchive-smoke")


class TestDropboxSmoke:
    """Simple smoke tests - one call per operation."""

    def test_display_name(self, store):
        """Verify we can connect and get account name."""
        assert "Dropbox" in store.display_name

    def test_exists_missing(self, store):
        assert store.exists("nonexistent_file_12345.pdf") is False

    def test_put_read_link_delete(self, store):
        path = f"{uuid.uuid4().hex}.txt"
        ref = store.put(path, b"docarchive smoke", "text/plain")
        try:
            assert store.read(path) == b"docarchive smoke"
            assert "dl=1" in store.get_download_url(ref)
        finally:
            store.delete(path)
        assert store.exists(path) is False
