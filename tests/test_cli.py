"""Tests for the typer command line."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from addon_harness.cli import app
from addon_harness.errors import CompletenessViolation, ConfigurationError

runner = CliRunner()


@pytest.fixture
def groups_file(tmp_path: Path) -> Path:
    path = tmp_path / "groups.yaml"
    path.write_text("networking:\n  - metallb\n  - traefik\n")
    return path


class TestGroupsCommands:
    def test_check_passes_when_every_addon_is_grouped(self, addons_dir, groups_file: Path) -> None:
        addons_dir("metallb")
        addons_dir("traefik")
        result = runner.invoke(
            app, ["groups", "check", "--groups-file", str(groups_file), "--addons-dir", str(addons_dir.root)]
        )
        assert result.exit_code == 0, result.output

    def test_check_fails_on_unhandled_addon(self, addons_dir, groups_file: Path) -> None:
        addons_dir("metallb")
        addons_dir("traefik")
        addons_dir("velero")
        result = runner.invoke(
            app, ["groups", "check", "--groups-file", str(groups_file), "--addons-dir", str(addons_dir.root)]
        )
        assert result.exit_code == 1
        assert isinstance(result.exception, CompletenessViolation)
        assert result.exception.unhandled == ["velero"]

    def test_list(self, groups_file: Path) -> None:
        result = runner.invoke(app, ["groups", "list", "--groups-file", str(groups_file)])
        assert result.exit_code == 0, result.output
        assert "networking" in result.output

    def test_show_unknown_group(self, addons_dir, groups_file: Path) -> None:
        addons_dir("metallb")
        addons_dir("traefik")
        result = runner.invoke(
            app,
            ["groups", "show", "storage", "--groups-file", str(groups_file), "--addons-dir", str(addons_dir.root)],
        )
        assert isinstance(result.exception, ConfigurationError)
