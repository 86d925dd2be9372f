"""Tests for CLI commands."""

import json
from datetime import date
from pathlib import Path

import pytest
from click.testing import CliRunner

from commitlog.cli import main
from commitlog.models import CommitRecord
from commitlog.storage import CommitStore


@pytest.fixture
def data_env(tmp_path: Path, monkeypatch) -> Path:
    """Point settings at a temporary data directory with no default tokens."""
    data_dir = tmp_path / "data"
    monkeypatch.setenv("COMMITLOG_DATA_DIR", str(data_dir))
    monkeypatch.setenv("COMMITLOG_GITHUB_TOKEN", "")
    monkeypatch.setenv("COMMITLOG_GITLAB_TOKEN", "")
    monkeypatch.setenv("COMMITLOG_LOG_LEVEL", "WARNING")
    monkeypatch.delenv("COMMITLOG_PROVIDER", raising=False)
    return data_dir


@pytest.fixture
def seeded(data_env: Path, sample_records: list[CommitRecord], token: str) -> Path:
    """GitHub store holding the sample records."""
    store = CommitStore(data_env / "github")
    store.upsert_commits(sample_records)
    store.replace_daily_counts(token, date.today(), date.today(), {date.today(): 3})
    return data_env


class TestCLI:
    """Tests for CLI commands."""

    def test_main_help(self) -> None:
        """Test main help output."""
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "Commit activity heatmaps" in result.output
        assert "--provider" in result.output

    def test_sync_help(self, data_env: Path) -> None:
        """Test sync command help."""
        runner = CliRunner()
        result = runner.invoke(main, ["sync", "--help"])

        assert result.exit_code == 0
        assert "--range" in result.output
        assert "--token" in result.output

    def test_commits_help(self, data_env: Path) -> None:
        """Test commits command help."""
        runner = CliRunner()
        result = runner.invoke(main, ["commits", "--help"])

        assert result.exit_code == 0
        assert "--project" in result.output
        assert "--branch" in result.output

    def test_projects_no_data(self, data_env: Path) -> None:
        """Test projects command with an empty store."""
        runner = CliRunner()
        result = runner.invoke(main, ["projects", "--token", "nothing-here"])

        assert result.exit_code == 0
        assert "No data found" in result.output

    def test_fetch_without_token_is_noop(self, data_env: Path) -> None:
        """Test fetch with no token syncs nothing and succeeds."""
        runner = CliRunner()
        result = runner.invoke(main, ["fetch"])

        assert result.exit_code == 0
        assert "Synced 0 days" in result.output

    def test_projects_and_branches(self, seeded: Path, token: str) -> None:
        """Test projects and branches listings for a seeded store."""
        runner = CliRunner()

        result = runner.invoke(main, ["projects", "-t", token])
        assert result.exit_code == 0
        assert "acme/Gadgets" in result.output
        assert "acme/widgets" in result.output

        result = runner.invoke(main, ["branches", "-t", token, "--project", "acme/widgets"])
        assert result.exit_code == 0
        assert "feature/Login" in result.output

    def test_configured_token_used_when_flag_missing(
        self, seeded: Path, token: str, monkeypatch
    ) -> None:
        """Test the configured token is used when no flag is given."""
        monkeypatch.setenv("COMMITLOG_GITHUB_TOKEN", token)
        runner = CliRunner()

        result = runner.invoke(main, ["projects"])

        assert result.exit_code == 0
        assert "acme/widgets" in result.output

    def test_commits_json(self, seeded: Path, token: str) -> None:
        """Test commits JSON output clamps page and size."""
        runner = CliRunner()
        result = runner.invoke(
            main, ["commits", "-t", token, "--project", "widgets", "--page", "0", "--size", "-5", "--json"]
        )

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert (data["page"], data["size"], data["total"]) == (1, 1, 2)
        assert data["records"][0]["sha"] == "bbb222"

    def test_heatmap_csv_export(self, seeded: Path, token: str, tmp_path: Path) -> None:
        """Test heatmap export to CSV covers the trailing year."""
        output = tmp_path / "heatmap.csv"
        runner = CliRunner()

        result = runner.invoke(
            main, ["heatmap", "-t", token, "-f", "csv", "-o", str(output)]
        )

        assert result.exit_code == 0
        lines = output.read_text().strip().splitlines()
        assert lines[0] == "date,count"
        assert len(lines) == 366
        assert lines[-1] == f"{date.today().isoformat()},3"

    def test_gitlab_provider_uses_own_store(self, seeded: Path, token: str) -> None:
        """Test data synced for GitHub is invisible to the GitLab family."""
        runner = CliRunner()
        result = runner.invoke(main, ["-p", "gitlab", "projects", "-t", token])

        assert result.exit_code == 0
        assert "No data found" in result.output
