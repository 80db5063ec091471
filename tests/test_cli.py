import json
from unittest.mock import patch

from click.testing import CliRunner

from anisync.anisync.main import cli
from anisync.anisync.cli.sync import sync
from anisync.anisync.cli.pending import pending, resolve
from anisync.anisync.cli.status import status
from anisync.anisync.cli.invoke import invoke
from anisync.anisync.cli.init_db import init_db
from anisync.anisync.models import MatchCandidate, SyncResult
from anisync.anisync.normalizer import normalize_anilist, normalize_kitsu
from conftest import anilist_media, kitsu_item


def test_group_lists_commands():
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for name in ("sync", "reconcile", "pending", "resolve", "dual-sync", "status", "invoke", "init-db"):
        assert name in result.output


def test_sync_command_passes_options():
    runner = CliRunner()
    with patch("anisync.anisync.cli.sync.run_sync") as mock_sync:
        mock_sync.return_value = SyncResult(content_type="manga", provider="jikan", processed=2, inserted=2, pages=1)

        result = runner.invoke(sync, ["manga", "--pages", "2", "--provider", "jikan", "--complete"])

        assert result.exit_code == 0, result.output
        args, kwargs = mock_sync.call_args
        assert args == ("manga",)
        assert kwargs["max_pages"] == 2
        assert kwargs["provider"] == "jikan"
        assert kwargs["complete"] is True
        assert kwargs["resume"] is False
        assert "Created" in result.output


def test_sync_command_rejects_unknown_type():
    result = CliRunner().invoke(sync, ["novel"])
    assert result.exit_code != 0


def test_pending_and_resolve(store):
    title_id, _ = store.create_title(normalize_anilist(anilist_media(), "anime"))
    match_id = store.add_pending_match(
        normalize_kitsu(kitsu_item(kitsu_id="9999", title="Lost Girls"), "anime"),
        [MatchCandidate(title_id, "Shingeki no Kyojin", 0.62)],
    )
    runner = CliRunner()

    listed = runner.invoke(pending, ["--candidates"])
    assert listed.exit_code == 0, listed.output
    assert "Lost Girls" in listed.output
    assert "Shingeki no Kyojin" in listed.output

    merged = runner.invoke(resolve, [str(match_id), "merged", "--target", str(title_id), "--by", "mod"])
    assert merged.exit_code == 0, merged.output
    assert "merged" in merged.output

    again = runner.invoke(resolve, [str(match_id), "rejected"])
    assert again.exit_code == 1
    assert "already merged" in again.output

    empty = runner.invoke(pending, [])
    assert "No pending matches" in empty.output


def test_status_shows_runs(store):
    run_id = store.start_run("anime", "bulk_import")
    store.finish_run(run_id, "completed", 50)

    result = CliRunner().invoke(status, [])

    assert result.exit_code == 0, result.output
    assert "Titles" in result.output
    assert "bulk_import" in result.output


def test_invoke_prints_json_and_sets_exit_code():
    runner = CliRunner()
    with patch.dict("anisync.anisync.cli.invoke.HANDLERS",
                    {"sync": lambda body: {"success": True, "echo": json.loads(body)}}):
        ok = runner.invoke(invoke, ["sync", '{"contentType": "anime"}'])
    assert ok.exit_code == 0
    assert '"contentType": "anime"' in ok.output

    bad = runner.invoke(invoke, ["resolve", '{"matchId": "x"}'])
    assert bad.exit_code == 1
    assert '"success": false' in bad.output


def test_init_db(db_url):
    result = CliRunner().invoke(init_db, [])
    assert result.exit_code == 0, result.output
    assert "Schema ready" in result.output
