"""Tests for DocArchive configuration, session and output routing."""

import argparse

import pytest

from docarchive import DocArchive, _strip_rich_markup
from docarchive.session import CURRENT_USER_KEY, JUST_LOGGED_IN_KEY


class FakeApp:
    def __init__(self):
        self.logs = []
        self.notifications = []

    def add_log(self, message):
        self.logs.append(message)

    def show_notification(self, message, error):
        self.notifications.append((message, error))


@pytest.fixture
def clean_session():
    DocArchive.logout()
    yield DocArchive.session
    DocArchive.logout()


class TestOutput:

    def test_routes_to_app(self):
        app = FakeApp()
        DocArchive.set_app(app)
        DocArchive.log("[bold]hello[/bold]")
        DocArchive.notify("failed", error=True)
        assert app.logs == ["[bold]hello[/bold]"]
        assert app.notifications == [("failed", True)]

    def test_cli_log_only_when_verbose(self, capsys):
        DocArchive.log("quiet")
        assert capsys.readouterr().out == ""
        DocArchive.verbose = True
        DocArchive.log("[red]loud[/red]")
        assert capsys.readouterr().out == "loud\n"

    def test_cli_notify_strips_markup(self, capsys):
        DocArchive.notify("[yellow]careful[/yellow]", error=True)
        assert capsys.readouterr().out == "Error: careful\n"

    def test_strip_rich_markup(self):
        assert _strip_rich_markup("[bold]a[/bold] [red]b[/red]") == "a b"


class TestSession:

    def test_login_normalizes(self, clean_session):
        DocArchive.login("  Dana@Example.com ")
        assert DocArchive.current_user() == "dana@example.com"
        assert clean_session.get(JUST_LOGGED_IN_KEY) == "1"

    def test_logout(self, clean_session):
        DocArchive.login("dana@example.com")
        DocArchive.logout()
        assert DocArchive.current_user() is None
        assert clean_session.get(CURRENT_USER_KEY) is None


class TestConfigure:

    def test_environment(self, monkeypatch, temp_dir, clean_session):
        monkeypatch.setenv("DOCARCHIVE_DATA_DIR", temp_dir)
        monkeypatch.setenv("DOCARCHIVE_BACKEND", "memory:")
        monkeypatch.setenv("DOCARCHIVE_USER", "lior@example.com")
        monkeypatch.delenv("BLOBSTORE", raising=False)
        monkeypatch.delenv("OCR_PROVIDER", raising=False)

        DocArchive.configure()
        assert DocArchive.data_dir == temp_dir
        assert DocArchive.backend_uri == "memory:"
        assert DocArchive.current_user() == "lior@example.com"

    def test_user_flag_wins(self, monkeypatch, clean_session):
        monkeypatch.setenv("DOCARCHIVE_USER", "lior@example.com")
        DocArchive.configure(argparse.Namespace(user="dana@example.com", verbose=False))
        assert DocArchive.current_user() == "dana@example.com"

    def test_init_resources(self, monkeypatch, temp_dir):
        monkeypatch.setenv("DOCARCHIVE_DATA_DIR", temp_dir)
        monkeypatch.setenv("DOCARCHIVE_BACKEND", "memory:")
        monkeypatch.setenv("BLOBSTORE", f"local:{temp_dir}/blobs")
        monkeypatch.delenv("OCR_PROVIDER", raising=False)
        monkeypatch.delenv("DOCARCHIVE_USER", raising=False)
        DocArchive.configure()
        try:
            DocArchive.init_resources()
            assert DocArchive.backend.available is True
            assert "local" in DocArchive.blob_store.display_name
            assert DocArchive.ocr is None
            assert DocArchive.db_path().startswith(temp_dir)
        finally:
            DocArchive.close()
        assert DocArchive.file_cache is None
