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

"""Group subcommands (list, show, check)."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.panel import Panel
from rich.table import Table

from addon_harness import console
from addon_harness.catalog import Catalog, LocalRepository
from addon_harness.commands.options import resolve_harness_config
from addon_harness.errors import CompletenessViolation
from addon_harness.groups import GroupResolver, load_group_definitions

app = typer.Typer(help="Inspect test groups and their catalog coverage.")


@app.command("list")
def list_groups(
    groups_file: Path | None = typer.Option(None, "--groups-file", help="Group definitions YAML"),
) -> None:
    """List test groups and their addons."""
    harness_cfg = resolve_harness_config(groups_file=groups_file)
    definitions = load_group_definitions(harness_cfg.groups_file)
    table = Table(title=f"Test groups ({harness_cfg.groups_file})")
    table.add_column("Group", style="cyan")
    table.add_column("Addons")
    for group in sorted(definitions):
        refs = definitions[group]
        table.add_row(group, ", ".join(f"{r.name}@{r.revision}" if r.revision else r.name for r in refs))
    console.print(table)


@app.command()
def show(
    group: str = typer.Argument(..., help="Group name"),
    groups_file: Path | None = typer.Option(None, "--groups-file", help="Group definitions YAML"),
    addons_dir: Path | None = typer.Option(None, "--addons-dir", help="Local addon repository"),
) -> None:
    """Resolve a group against the local catalog and print its addons."""
    harness_cfg = resolve_harness_config(groups_file=groups_file, addons_dir=addons_dir)
    resolver = GroupResolver(
        Catalog(LocalRepository("local", harness_cfg.addons_dir)),
        load_group_definitions(harness_cfg.groups_file),
    )
    table = Table(title=f"Group {group}")
    table.add_column("Addon", style="cyan")
    table.add_column("Revision")
    table.add_column("Chart")
    table.add_column("Namespace")
    for addon in resolver.resolve(group):
        chart = f"{addon.chart.chart}@{addon.chart.version}" if addon.chart.version else addon.chart.chart
        table.add_row(addon.name, addon.revision, chart, addon.namespace)
    console.print(table)


@app.command()
def check(
    groups_file: Path | None = typer.Option(None, "--groups-file", help="Group definitions YAML"),
    addons_dir: Path | None = typer.Option(None, "--addons-dir", help="Local addon repository"),
) -> None:
    """Fail if any local addon is not part of a test group."""
    harness_cfg = resolve_harness_config(groups_file=groups_file, addons_dir=addons_dir)
    local = LocalRepository("local", harness_cfg.addons_dir)
    resolver = GroupResolver(Catalog(local), load_group_definitions(harness_cfg.groups_file))

    console.print(Panel.fit("Checking addon coverage", style="bold blue"))
    try:
        resolver.check_completeness(local)
    except CompletenessViolation as err:
        for name in err.unhandled:
            console.print(f"[red]  ✗ {name}[/red]")
        raise
    console.print(f"[green]✅ All {len(local.list_addons())} addons belong to a test group[/green]")
