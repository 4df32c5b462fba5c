"""
Tests for the command line surface.
"""

from pathlib import Path

import pytest

from rendezvous import cli


class TestArguments:
    def test_server_needs_no_address(self):
        args = cli.build_parser().parse_args(["server"])
        assert args.mode == "server"
        assert args.address is None

    def test_responder_needs_address(self, capsys):
        with pytest.raises(SystemExit) as info:
            cli.main(["client"])
        assert info.value.code == 2
        assert "advertiser address" in capsys.readouterr().err

    def test_responder_rejects_bad_address(self, capsys):
        with pytest.raises(SystemExit):
            cli.main(["client", "0x1234"])
        assert "not a feed address" in capsys.readouterr().err


class TestMain:
    def test_missing_config_exits_1(self, tmp_path, capsys):
        code = cli.main(["server", "--config", str(tmp_path / "absent.yaml")])
        assert code == 1
        assert "config file not found" in capsys.readouterr().err

    def test_any_other_mode_runs_responder(self, tmp_path, monkeypatch):
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        calls = []

        async def fake_respond(config, address):
            calls.append((config.gateway, address))

        monkeypatch.setattr(cli, "respond", fake_respond)
        address = "0x" + "AB" * 20
        code = cli.main(["hello", address, "--gateway", "http://swarm:8500"])
        assert code == 0
        assert calls == [("http://swarm:8500", address.lower())]

    def test_server_mode_uses_key_file(self, tmp_path, monkeypatch):
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        seen = []

        async def fake_serve(config):
            seen.append(config.key_file)

        monkeypatch.setattr(cli, "serve", fake_serve)
        code = cli.main(["server", "--key-file", str(tmp_path / "keys.json")])
        assert code == 0
        assert seen == [tmp_path / "keys.json"]

    def test_corrupt_key_file_exits_1(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        key_file = tmp_path / "keys.json"
        key_file.write_text('{"privateKey": 5}')
        code = cli.main(["server", "--key-file", str(key_file)])
        assert code == 1
        assert "non-string private key" in capsys.readouterr().err

    def test_unreadable_key_file_exits_1(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        key_file = tmp_path / "keys.json"
        key_file.mkdir()
        code = cli.main(["server", "--key-file", str(key_file)])
        assert code == 1
        assert capsys.readouterr().err.startswith("error: ")
