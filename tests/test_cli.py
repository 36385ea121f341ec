"""Tests for the command-line interface."""

import json

import pytest
from click.testing import CliRunner

from quotesync import cli
from quotesync.models import DEFAULT_QUOTES, SyncState
from quotesync.state import StateDatabase
from quotesync.sync.remote import PushReport, PushResult, RemoteSource

from conftest import rec


class StubRemote(RemoteSource):
    """Stands in for HttpRemoteSource in `sync` tests."""

    snapshot = [rec(1, "Server quote", "server")]

    def __init__(self, *args, **kwargs):
        self.closed = False

    async def fetch_snapshot(self):
        return list(self.snapshot)

    async def push(self, records):
        return PushReport(results=[PushResult(r.id, True) for r in records])

    async def aclose(self):
        self.closed = True


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    monkeypatch.setenv("QUOTESYNC_LOG_DIR", str(tmp_path / "logs"))
    return tmp_path / "state.db"


@pytest.fixture
def run(db_path):
    runner = CliRunner()

    def invoke(*args, **kwargs):
        return runner.invoke(cli.main, ["--state-db", str(db_path), *args], **kwargs)

    return invoke


class TestQuoteCommands:
    """add / list / remove / categories / random."""

    def test_first_run_has_defaults(self, run, db_path):
        result = run("status")
        assert result.exit_code == 0
        assert str(len(DEFAULT_QUOTES)) in result.output
        assert len(StateDatabase(db_path).load()) == len(DEFAULT_QUOTES)

    def test_add_and_list(self, run, db_path):
        result = run("add", "Keep going.", "Grit")
        assert result.exit_code == 0
        assert "Quote added successfully" in result.output

        saved = StateDatabase(db_path).load()
        assert saved[-1].text == "Keep going."
        assert saved[-1].category == "grit"

        result = run("list", "--category", "grit")
        assert result.exit_code == 0
        assert "Keep going." in result.output
        assert "Quality is not" not in result.output

    def test_add_rejects_blank(self, run):
        result = run("add", "   ", "grit")
        assert result.exit_code != 0
        assert "non-empty" in result.output

    def test_list_filter_is_remembered(self, run, db_path):
        run("list", "--category", "wisdom")
        assert StateDatabase(db_path).load_sync_state().last_filter == "wisdom"

        result = run("list")
        assert "Quality is not" in result.output
        assert "Innovation" not in result.output

        run("list", "--category", "all")
        assert StateDatabase(db_path).load_sync_state().last_filter is None

    def test_remove(self, run, db_path):
        run("status")
        target = StateDatabase(db_path).load()[0]

        result = run("remove", target.id)
        assert result.exit_code == 0
        assert "Removed" in result.output
        assert target.id not in {r.id for r in StateDatabase(db_path).load()}

        result = run("remove", target.id)
        assert result.exit_code == 0
        assert "No quote with ID" in result.output

    def test_categories(self, run):
        result = run("categories")
        assert result.exit_code == 0
        assert "motivation" in result.output

    def test_random_from_empty_category(self, run):
        result = run("random", "--category", "nonexistent")
        assert result.exit_code == 0
        assert "No quotes available" in result.output


class TestFileCommands:
    """import / export / clear."""

    def test_import_skips_incomplete_entries(self, run, db_path, tmp_path):
        path = tmp_path / "in.json"
        path.write_text('[{"text":"t1"},{"text":"t2","category":"c2"}]')

        result = run("import", str(path))

        assert result.exit_code == 0
        assert "Imported 1 quote" in result.output
        saved = StateDatabase(db_path).load()
        assert len(saved) == len(DEFAULT_QUOTES) + 1
        assert saved[-1].text == "t2"

    def test_import_rejects_malformed_file(self, run, db_path, tmp_path):
        path = tmp_path / "in.json"
        path.write_text('{"text": "t1", "category": "c"}')

        result = run("import", str(path))

        assert result.exit_code != 0
        assert "JSON array" in result.output

    def test_export(self, run, db_path, tmp_path):
        out = tmp_path / "export" / "quotes.json"
        result = run("export", str(out))
        assert result.exit_code == 0
        data = json.loads(out.read_text())
        assert [item["text"] for item in data] == [text for text, _ in DEFAULT_QUOTES]
        assert set(data[0]) == {"id", "text", "category", "updatedAt"}

    def test_clear(self, run, db_path):
        run("status")
        result = run("clear", "--yes")
        assert result.exit_code == 0
        assert StateDatabase(db_path).load() is None

    def test_clear_asks_first(self, run, db_path):
        run("status")
        result = run("clear", input="n\n")
        assert result.exit_code != 0
        assert StateDatabase(db_path).load() is not None


class TestSyncCommand:
    """sync --once against a stubbed remote."""

    def test_sync_once(self, run, db_path, monkeypatch):
        monkeypatch.setattr(cli, "HttpRemoteSource", StubRemote)

        result = run("sync", "--once")

        assert result.exit_code == 0, result.output
        assert "Synced with server" in result.output
        saved = StateDatabase(db_path).load()
        assert saved[0].text == "Server quote"
        assert len(saved) == len(DEFAULT_QUOTES) + 1
        assert StateDatabase(db_path).load_sync_state().last_synced_at is not None

    def test_sync_once_failure_exits_non_zero(self, run, monkeypatch):
        from quotesync.errors import NetworkError

        class OfflineRemote(StubRemote):
            async def fetch_snapshot(self):
                raise NetworkError("offline")

        monkeypatch.setattr(cli, "HttpRemoteSource", OfflineRemote)

        result = run("sync", "--once")

        assert result.exit_code == 1
        assert "Sync failed: offline" in result.output

    def test_bad_interval_config(self, run, monkeypatch):
        monkeypatch.setenv("QUOTESYNC_SYNC_INTERVAL", "soon")
        result = run("sync", "--once")
        assert result.exit_code != 0
        assert "QUOTESYNC_SYNC_INTERVAL" in result.output

    def test_bad_timeout_config(self, run, monkeypatch):
        monkeypatch.setattr(cli, "HttpRemoteSource", StubRemote)
        monkeypatch.setenv("QUOTESYNC_REMOTE_TIMEOUT", "-5")
        result = run("sync", "--once")
        assert result.exit_code != 0
        assert "QUOTESYNC_REMOTE_TIMEOUT" in result.output
        assert "Traceback" not in result.output

    @pytest.mark.parametrize("interval", ["0", "-1"])
    def test_rejects_non_positive_interval(self, run, monkeypatch, interval):
        monkeypatch.setattr(cli, "HttpRemoteSource", StubRemote)
        result = run("sync", "--once", "--interval", interval)
        assert result.exit_code != 0
        assert "--interval must be positive" in result.output


class TestStatusCommand:
    """status output."""

    def test_shows_last_sync_time(self, run, db_path):
        run("status")
        StateDatabase(db_path).save_sync_state(SyncState(last_synced_at=1_700_000_000_000))
        result = run("status")
        assert result.exit_code == 0
        assert "never" not in result.output
