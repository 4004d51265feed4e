"""Tests for the entry dispatcher and admin subcommands."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from conftest import make_settings, write_config

from dockerize.__main__ import main, persona
from dockerize.mapping import ConfigError
from dockerize.runtime import RuntimeFailure
from dockerize.session import UnknownCommandError


class TestPersona:
    def test_plain_name(self):
        assert persona("/usr/local/bin/go") == "go"

    def test_windows_exe(self):
        assert persona("ruby.exe") == "ruby"

    def test_module_invocation(self):
        assert persona("/site-packages/dockerize/__main__.py") == "__main__"


class TestDispatch:
    def test_tool_persona_runs_session(self):
        with patch("dockerize.session.run") as mock_run:
            main(["/usr/local/bin/go", "build", "./..."])
        mock_run.assert_called_once_with("go", ["build", "./..."])

    def test_trampoline_persona(self):
        with patch("dockerize.trampoline.main", return_value=0) as mock_tramp:
            with pytest.raises(SystemExit) as exc_info:
                main(["execwdve", "A=1", "/w", "ls"])
        assert exc_info.value.code == 0
        mock_tramp.assert_called_once_with(["A=1", "/w", "ls"])

    def test_admin_run_subcommand(self):
        with patch("dockerize.session.run") as mock_run:
            main(["dockerize", "run", "ruby", "-e", "puts 1"])
        mock_run.assert_called_once_with("ruby", ["-e", "puts 1"])

    def test_admin_requires_subcommand(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["dockerize"])
        assert exc_info.value.code == 2


class TestFatalErrors:
    @pytest.mark.parametrize(
        ("exc", "code"),
        [
            (ConfigError(None, "malformed JSON"), 1),
            (UnknownCommandError("cargo", None), 1),
            (RuntimeFailure("daemon down", exit_code=125), 125),
        ],
    )
    def test_reported_with_exit_code(self, exc, code, capsys):
        with patch("dockerize.session.run", side_effect=exc):
            with pytest.raises(SystemExit) as exc_info:
                main(["cargo"])
        assert exc_info.value.code == code
        assert capsys.readouterr().err.startswith("dockerize: ")


class TestAdminCommands:
    @pytest.fixture
    def in_project(self, project, monkeypatch):
        home, project_dir = project
        write_config(project_dir, '{"containers": {"golang": {"commands": ["go", "gofmt"]}}}')
        (project_dir / ".golang-version").write_text("golang-1.22\n")
        monkeypatch.chdir(project_dir)
        monkeypatch.setenv("HOME", str(home))
        monkeypatch.delenv("USERPROFILE", raising=False)
        return project_dir

    def test_which(self, in_project, capsys):
        main(["dockerize", "which", "go"])
        out = capsys.readouterr().out
        assert "container: golang" in out
        assert "version:   1.22" in out
        assert "instance:  golang_1.22" in out
        assert "dockerize.json" in out

    def test_which_unknown_command(self, in_project, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["dockerize", "which", "cargo"])
        assert exc_info.value.code == 1
        assert "cargo" in capsys.readouterr().err

    def test_config_lists_commands(self, in_project, capsys):
        main(["dockerize", "config"])
        out = capsys.readouterr().out
        assert "go\tgolang" in out
        assert "gofmt\tgolang" in out

    def test_config_builtin(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(
            "dockerize.config._settings", make_settings(config_filename="absent-dockerize.json")
        )
        monkeypatch.chdir(tmp_path)
        main(["dockerize", "config"])
        out = capsys.readouterr().out
        assert out.startswith("# built-in")
        assert "ruby\truby" in out

    def test_provision_prints_run_command(self, in_project, capsys):
        runtime = MagicMock()
        runtime.run_args.return_value = ["docker", "run", "-d", "--name", "golang_1.22"]
        with patch("dockerize.runtime.get_runtime", return_value=runtime):
            main(["dockerize", "provision", "go"])
        assert capsys.readouterr().out.strip() == "docker run -d --name golang_1.22"
        instance, image, mounts = runtime.run_args.call_args.args
        assert instance == "golang_1.22"
        assert image == "golang:1.22"
        assert mounts
