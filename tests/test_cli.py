# tests/test_cli.py
"""Tests for the command line front end."""

import json

import pytest

from nftreg.cli import main


@pytest.fixture
def run(tmp_path, capsys, monkeypatch):
    """Run the CLI against a data file in tmp_path; return (status, parsed stdout)."""
    monkeypatch.delenv("NFTREG_BACKEND", raising=False)
    monkeypatch.delenv("NFTREG_DATA_PATH", raising=False)
    data = str(tmp_path / "nft.json")

    def _run(*argv):
        status = main(["--data", data, *argv])
        out = capsys.readouterr().out
        return status, json.loads(out) if out.strip() else None
    return _run


class TestCli:
    """Test CLI commands."""

    def test_mint_and_list(self, run):
        status, result = run("mint", "1", "alice", "--uri", "ipfs://1",
                             "--extension", '{"rarity": "rare"}')
        assert status == 0
        assert result["count"] == 1
        assert result["extension"] == {"rarity": "rare"}

        status, result = run("tokens", "alice")
        assert [t["token_id"] for t in result["tokens"]] == ["1"]

    def test_transfer_and_burn(self, run):
        run("mint", "1", "alice")
        run("approve", "1", "bob", "--expires-height", "50")
        status, result = run("transfer", "1", "carol")
        assert status == 0
        assert result["owner"] == "carol"
        assert result["approvals"] == []

        status, result = run("burn", "1")
        assert result == {"token_id": "1", "burned": True, "count": 0}
        assert run("count")[1] == {"count": 0}

    def test_rejections_exit_one(self, run, capsys):
        run("mint", "1", "alice")
        status, _ = run("mint", "1", "bob")
        assert status == 1
        status, _ = run("info", "missing")
        assert status == 1

    def test_operator_commands(self, run):
        run("grant-operator", "alice", "op", "--expires-time", "1000")
        status, result = run("--time", "999", "is-operator", "alice", "op")
        assert result["valid"] is True
        status, result = run("--time", "1000", "is-operator", "alice", "op")
        assert result["valid"] is False

        status, result = run("--time", "1000", "operators", "alice", "--include-expired")
        assert result["operators"] == [{"operator": "op", "expires": {"at_time": 1000}}]

        run("revoke-operator", "alice", "op")
        status, result = run("operators", "alice", "--include-expired")
        assert result["operators"] == []

    def test_info_shows_active_approvals(self, run):
        run("mint", "1", "alice")
        run("approve", "1", "bob", "--expires-height", "10")
        run("approve", "1", "carol")
        status, result = run("--height", "10", "info", "1")
        assert [a["spender"] for a in result["approvals"]] == ["bob", "carol"]
        assert [a["spender"] for a in result["active_approvals"]] == ["carol"]

    def test_init_and_check(self, run):
        status, result = run("init", "Cats", "CAT", "minter")
        assert result == {"name": "Cats", "symbol": "CAT", "minter": "minter"}
        run("mint", "1", "alice")
        status, result = run("check")
        assert status == 0
        assert result == {"consistent": True, "problems": []}

    def test_corrupt_data_exits_two(self, run, tmp_path):
        (tmp_path / "nft.json").write_text("garbage")
        status, _ = run("count")
        assert status == 2

    def test_no_command(self, run):
        status = main([])
        assert status == 1
