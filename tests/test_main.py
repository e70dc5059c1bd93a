"""Smoke tests for the command-line entrypoint."""

import sys

import pytest

from stickreel import main as cli
from stickreel.project import ProjectStore


def _run(monkeypatch, *argv: str) -> None:
    monkeypatch.setattr(sys, "argv", ["stickreel", *argv])
    cli.main()


class TestCli:
    def test_new_then_list(self, monkeypatch, tmp_path, capsys):
        projects = str(tmp_path / "projects")
        _run(monkeypatch, "--projects-dir", projects, "new", "Jumping jacks")
        _run(monkeypatch, "--projects-dir", projects, "list")
        out = capsys.readouterr().out
        assert "Jumping jacks" in out
        assert len(ProjectStore(projects).list_projects()) == 1

    def test_export_unknown_project_exits(self, monkeypatch, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            _run(monkeypatch, "--projects-dir", str(tmp_path), "export", "missing")
        assert excinfo.value.code == 1

    def test_srt_without_api_key(self, monkeypatch, tmp_path):
        monkeypatch.setattr(cli.config, "ELEVENLABS_API_KEY", "")
        output = tmp_path / "out.srt"
        _run(monkeypatch, "srt", "Hello there.", "-o", str(output))
        assert output.read_text().startswith("1\n00:00:00,000 --> ")
        assert "Hello there." in output.read_text()
