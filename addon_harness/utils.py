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

"""Utility functions for running kubectl, helm, and other commands."""

from __future__ import annotations

import json
import os
import subprocess
from pathlib import Path

import sh

from addon_harness import console, logger
from addon_harness.errors import CommandError


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        RuntimeError: If the command is not found.
    """
    try:
        sh.which(cmd)
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Required command '{cmd}' not found. Please install it first.") from err


def command_env(kubeconfig: Path | None = None) -> dict[str, str]:
    """Build the environment for a cluster command.

    Args:
        kubeconfig: Kubeconfig of the target cluster, or None to inherit.

    Returns:
        A copy of the process environment with ``KUBECONFIG`` set if given.
    """
    env = dict(os.environ)
    if kubeconfig is not None:
        env["KUBECONFIG"] = str(kubeconfig)
    return env


def run_command(cmd: str, *args: str, kubeconfig: Path | None = None, cwd: Path | None = None) -> None:
    """Run an external command, streaming its stdout/stderr to the console.

    Output goes to the console of the calling thread, so a group running
    with buffered output keeps the command's output in its own block.

    Args:
        cmd: Executable name (e.g. ``kubectl``).
        *args: Command arguments.
        kubeconfig: Kubeconfig of the target cluster, or None to inherit.
        cwd: Working directory for the command.

    Raises:
        CommandError: If the command is missing or exits non-zero.
    """
    command_line = " ".join([cmd, *args])
    sink = console.current()

    def _emit(line: str) -> None:
        sink.print(line.rstrip("\n"), markup=False, highlight=False)

    logger.info("Running %s", command_line)
    try:
        sh.Command(cmd)(
            *args,
            _out=_emit,
            _err=_emit,
            _env=command_env(kubeconfig),
            _cwd=str(cwd) if cwd else None,
        )
    except sh.CommandNotFound as err:
        raise CommandError(command_line, 127, f"{cmd} not found") from err
    except sh.ErrorReturnCode as err:
        raise CommandError(command_line, err.exit_code) from err


def kubectl(*args: str, kubeconfig: Path | None = None) -> None:
    """Run kubectl against a cluster, streaming output to the console."""
    run_command("kubectl", *args, kubeconfig=kubeconfig)


def run_kubectl(args: list[str], kubeconfig: Path | None = None, timeout: int = 30) -> tuple[bool, str, str]:
    """Run a kubectl command via subprocess and return (success, stdout, stderr).

    Uses subprocess instead of sh because callers parse stdout as JSON and
    need it separated from warnings on stderr.

    Args:
        args: kubectl arguments (e.g. ``["get", "pods", "-n", "default"]``).
        kubeconfig: Kubeconfig of the target cluster, or None to inherit.
        timeout: Maximum seconds to wait for the command to complete.

    Returns:
        Tuple of (success, stdout, stderr).
    """
    try:
        result = subprocess.run(
            ["kubectl", *args],
            capture_output=True,
            text=True,
            timeout=timeout,
            env=command_env(kubeconfig),
        )
        return result.returncode == 0, result.stdout, result.stderr
    except (subprocess.SubprocessError, OSError) as exc:
        return False, "", str(exc)


def get_resource(kind: str, name: str | None, namespace: str, kubeconfig: Path | None = None,
                 selector: str | None = None) -> dict:
    """Fetch a namespaced resource (or a labelled list of them) as JSON.

    Args:
        kind: Resource kind (e.g. ``job``, ``pods``).
        name: Resource name, or None to list.
        namespace: Namespace to query.
        kubeconfig: Kubeconfig of the target cluster, or None to inherit.
        selector: Label selector used when listing.

    Returns:
        The decoded JSON object.

    Raises:
        CommandError: If kubectl fails or returns invalid JSON.
    """
    args = ["get", kind]
    if name:
        args.append(name)
    args += ["-n", namespace, "-o", "json"]
    if selector:
        args += ["-l", selector]
    ok, stdout, stderr = run_kubectl(args, kubeconfig=kubeconfig)
    command_line = " ".join(["kubectl", *args])
    if not ok:
        raise CommandError(command_line, 1, stderr)
    try:
        return json.loads(stdout)
    except json.JSONDecodeError as err:
        raise CommandError(command_line, 0, f"invalid JSON output: {err}") from err
