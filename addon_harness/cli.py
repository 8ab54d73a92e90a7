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

"""
cli.py - Command line entry point for addon testing.

Subcommands:
    groups     Inspect test groups (list, show, check)
    run        Run test groups on fresh kind clusters (group, all)

Examples:
    # Fail if an addon is not covered by any test group
    addon-harness groups check

    # Test the kommander group
    addon-harness run group kommander

    # Test every group, two clusters at a time
    addon-harness run all --parallel

Environment Variables:
    Configuration can be overridden via ADDON_TEST_* environment variables,
    e.g. ADDON_TEST_GROUPS_FILE, ADDON_TEST_KUBERNETES_VERSION,
    ADDON_TEST_READY_TIMEOUT (see addon_harness.config).
"""

from __future__ import annotations

import logging
import sys

import typer

from addon_harness import console
from addon_harness.commands import groups_cmd, run_cmd

app = typer.Typer(
    help="Lifecycle tests for Kubernetes addon catalogs.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback() -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.add_typer(groups_cmd.app, name="groups")
app.add_typer(run_cmd.app, name="run")


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
