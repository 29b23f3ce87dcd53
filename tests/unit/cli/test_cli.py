"""Tests for the command-line entry points."""

import json
import tempfile
from pathlib import Path

import pytest
import yaml

from restbase import __version__
from restbase.cli import commands
from restbase.cli.commands import create_rankings_parser, create_watch_parser
from restbase.cli.main import main


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "RESTBASE_URL",
        "RESTBASE_ANON_KEY",
        "RESTBASE_ENVIRONMENT",
        "RESTBASE_METRICS_PORT",
        "RESTBASE_OTLP_ENDPOINT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file():
    data = {"backend": {"url": "https://x.example.co", "anon_key": "secret-key-123"}}
    with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as f:
        yaml.dump(data, f)
        path = Path(f.name)
    yield path
    path.unlink()


class TestMain:
    def test_help(self, capsys) -> None:
        assert main([]) == 0
        assert "Usage:" in capsys.readouterr().out

    def test_version(self, capsys) -> None:
        assert main(["version"]) == 0
        assert __version__ in capsys.readouterr().out

    def test_unknown_command(self, capsys) -> None:
        assert main(["frobnicate"]) == 1
        assert "Unknown command" in capsys.readouterr().out


class TestConfigCommands:
    def test_validate_file(self, config_file, capsys) -> None:
        assert main(["config", "validate", str(config_file)]) == 0
        assert "valid" in capsys.readouterr().out

    def test_validate_missing_file(self, capsys) -> None:
        assert main(["config", "validate", "/nonexistent.yaml"]) == 1

    def test_validate_without_credentials_fails(self, capsys) -> None:
        assert main(["config", "validate"]) == 1
        assert "failed" in capsys.readouterr().out

    def test_show_json_shortens_key(self, config_file, capsys) -> None:
        assert main(["config", "show", str(config_file), "--format", "json"]) == 0

        shown = json.loads(capsys.readouterr().out)
        assert shown["backend"]["url"] == "https://x.example.co"
        assert shown["backend"]["anon_key"] == "secret..."

    def test_show_invalid_format(self, capsys) -> None:
        assert main(["config", "show", "--format=xml"]) == 1

    def test_unknown_config_command(self) -> None:
        with pytest.raises(SystemExit):
            main(["config", "explode"])

    def test_config_without_subcommand_prints_help(self, capsys) -> None:
        assert main(["config"]) == 0
        assert "validate" in capsys.readouterr().out

    def test_init_writes_template(self, capsys) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            output = Path(tmp) / "restbase.yaml"

            assert main(["config", "init", "--output", str(output)]) == 0
            written = yaml.safe_load(output.read_text())
            assert written["poller"]["table"] == "rankings"

            assert main(["config", "init", "--output", str(output)]) == 1
            assert main(["config", "init", "--output", str(output), "--force"]) == 0


class TestBackendCommands:
    def test_rankings_parser_defaults(self) -> None:
        args = create_rankings_parser().parse_args([])
        assert args.limit == 10
        assert args.config is None

    def test_watch_parser(self) -> None:
        args = create_watch_parser().parse_args(
            ["--table", "scores", "--interval", "0.5", "--duration", "3"]
        )
        assert args.table == "scores"
        assert args.interval == 0.5
        assert args.duration == 3.0

    def test_rankings_without_config_fails(self, capsys) -> None:
        assert main(["rankings"]) == 1
        assert "Configuration error" in capsys.readouterr().out

    def test_watch_without_config_fails(self, capsys) -> None:
        assert main(["watch"]) == 1


class TestLoad:
    def test_tracing_enabled_sets_up_tracing(self, monkeypatch) -> None:
        calls: list = []
        monkeypatch.setattr(
            commands, "setup_tracing", lambda *args: calls.append(args)
        )
        data = {
            "backend": {"url": "https://x.example.co", "anon_key": "secret-key-123"},
            "tracing": {"enabled": True, "otlp_endpoint": "http://collector:4317"},
        }
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "restbase.yaml"
            path.write_text(yaml.safe_dump(data))

            config = commands._load(str(path))

        assert config.tracing.enabled
        assert calls == [("restbase", "http://collector:4317")]

    def test_tracing_disabled_by_default(self, monkeypatch, config_file) -> None:
        calls: list = []
        monkeypatch.setattr(
            commands, "setup_tracing", lambda *args: calls.append(args)
        )

        commands._load(str(config_file))

        assert calls == []
