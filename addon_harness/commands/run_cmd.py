# /*
# Copyright 2026 The Grove Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Run subcommands (group, all)."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from addon_harness import console
from addon_harness.commands.options import resolve_harness_config, resolve_kind_config
from addon_harness.config import display_config
from addon_harness.runner import GroupResult, RunContext, run_groups
from addon_harness.utils import require_command

app = typer.Typer(help="Run test groups against fresh kind clusters.")


def _load_context(
    groups_file: Path | None,
    addons_dir: Path | None,
    no_remote: bool,
    kubernetes_version: str | None,
) -> RunContext:
    harness_cfg = resolve_harness_config(
        groups_file=groups_file,
        addons_dir=addons_dir,
        remote_url="" if no_remote else None,
    )
    kind_cfg = resolve_kind_config(kubernetes_version=kubernetes_version)
    display_config(harness_cfg, kind_cfg)
    for cmd in ("kind", "kubectl", "helm"):
        require_command(cmd)
    return RunContext.from_config(harness_cfg, kind_cfg)


def _summarize(results: dict[str, GroupResult]) -> None:
    table = Table(title="Addon test summary")
    table.add_column("Group", style="cyan")
    table.add_column("Result")
    table.add_column("Cleanup")
    for group, result in results.items():
        outcome = "[green]PASS[/green]" if result.passed else "[red]FAIL[/red]"
        cleanup = "[green]clean[/green]" if result.clean else "[yellow]residue[/yellow]"
        table.add_row(group, outcome, cleanup)
    console.print(table)
    if not all(r.passed and r.clean for r in results.values()):
        raise typer.Exit(code=1)


@app.command()
def group(
    names: list[str] = typer.Argument(..., help="Groups to test"),
    parallel: bool = typer.Option(False, "--parallel", help="Run groups concurrently"),
    groups_file: Path | None = typer.Option(None, "--groups-file", help="Group definitions YAML"),
    addons_dir: Path | None = typer.Option(None, "--addons-dir", help="Local addon repository"),
    no_remote: bool = typer.Option(False, "--no-remote", help="Only use the local addon repository"),
    kubernetes_version: str | None = typer.Option(None, "--kubernetes-version", help="Kubernetes version"),
) -> None:
    """Test the named groups, each on its own cluster."""
    ctx = _load_context(groups_file, addons_dir, no_remote, kubernetes_version)
    try:
        _summarize(run_groups(ctx, names, parallel=parallel))
    finally:
        ctx.catalog.close()


@app.command("all")
def all_groups(
    parallel: bool = typer.Option(False, "--parallel", help="Run groups concurrently"),
    groups_file: Path | None = typer.Option(None, "--groups-file", help="Group definitions YAML"),
    addons_dir: Path | None = typer.Option(None, "--addons-dir", help="Local addon repository"),
    no_remote: bool = typer.Option(False, "--no-remote", help="Only use the local addon repository"),
    kubernetes_version: str | None = typer.Option(None, "--kubernetes-version", help="Kubernetes version"),
) -> None:
    """Test every defined group."""
    ctx = _load_context(groups_file, addons_dir, no_remote, kubernetes_version)
    try:
        _summarize(run_groups(ctx, ctx.resolver.group_names(), parallel=parallel))
    finally:
        ctx.catalog.close()
