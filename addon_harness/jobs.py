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

"""Standard addon phases (validate, deploy, default, cleanup) and custom checks."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import yaml

from addon_harness import console
from addon_harness.catalog import Addon
from addon_harness.cluster import ClusterHandle
from addon_harness.constants import (
    DEFAULT_CHECK_INTERVAL_SECONDS,
    DEFAULT_CHECK_TIMEOUT_SECONDS,
    DEFAULT_READY_INTERVAL_SECONDS,
    DEFAULT_READY_TIMEOUT_SECONDS,
    LABEL_INSTANCE,
    LABEL_RELEASE,
    NS_DEFAULT,
    PHASE_CLEANUP,
    PHASE_DEFAULT,
    PHASE_DEPLOY,
    PHASE_VALIDATE,
)
from addon_harness.errors import CommandError, FatalError, JobFailure
from addon_harness.harness import Job, Phase, Policy
from addon_harness.poller import poll_until
from addon_harness.utils import get_resource, kubectl, run_command

UNREACHABLE_MARKERS = ("Unable to connect to the server", "connection refused", "no such host")


def _observe(fetch: Callable[[], dict], cluster: ClusterHandle) -> dict:
    """Run a cluster query, escalating an unreachable API server to FatalError."""
    try:
        return fetch()
    except CommandError as err:
        stderr = str(err.details.get("stderr", ""))
        if any(marker in stderr for marker in UNREACHABLE_MARKERS):
            raise FatalError("cluster API server is unreachable", {"cluster": cluster.name}) from err
        raise


# ============================================================================
# Validate
# ============================================================================

def validate_addon(addon: Addon) -> None:
    """Check an addon is deployable before anything touches the cluster.

    Raises:
        JobFailure: Describing the first missing or malformed field.
    """
    if not addon.revision:
        raise JobFailure("addon has no revision", {"expected": "non-empty revision"})
    if not addon.chart.chart:
        raise JobFailure("addon has no chart reference", {"expected": "spec.chartReference.chart"})
    if not addon.chart.repo:
        raise JobFailure("addon has no chart repository", {"expected": "spec.chartReference.repo"})
    if addon.chart.values:
        try:
            values = yaml.safe_load(addon.chart.values)
        except yaml.YAMLError as err:
            raise JobFailure("addon values are not valid YAML", {"error": err}) from err
        if values is not None and not isinstance(values, dict):
            raise JobFailure(
                "addon values must be a mapping",
                {"expected": "mapping", "observed": type(values).__name__},
            )


def validate_phase(addons: Sequence[Addon]) -> Phase:
    phase = Phase(PHASE_VALIDATE, policy=Policy.FAIL_FAST)
    for addon in addons:
        phase.add(Job(f"validate-{addon.name}", lambda ctx, cluster, a=addon: validate_addon(a), addon=addon.name))
    return phase


# ============================================================================
# Deploy
# ============================================================================

def helm_install_args(addon: Addon, values_file: Path | None = None) -> list[str]:
    """Build ``helm upgrade --install`` arguments for an addon.

    Args:
        addon: Addon to install.
        values_file: File holding the addon's values, if it has any.

    Returns:
        Arguments for the ``helm`` command.
    """
    chart = addon.chart.chart
    args = ["upgrade", "--install", addon.release]
    if addon.chart.repo:
        args += [chart.split("/")[-1], "--repo", addon.chart.repo]
    else:
        args.append(chart)
    if addon.chart.version:
        args += ["--version", addon.chart.version]
    args += ["--namespace", addon.namespace, "--create-namespace"]
    if values_file is not None:
        args += ["--values", str(values_file)]
    return args


def deploy_addon(addon: Addon, cluster: ClusterHandle) -> None:
    """Issue the Helm install for an addon; does not wait for readiness."""
    if not addon.chart.values:
        run_command("helm", *helm_install_args(addon), kubeconfig=cluster.kubeconfig)
        return
    fd, path = tempfile.mkstemp(prefix=f"{addon.name}-", suffix="-values.yaml")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(addon.chart.values)
        run_command("helm", *helm_install_args(addon, Path(path)), kubeconfig=cluster.kubeconfig)
    finally:
        os.unlink(path)


def deploy_phase(addons: Sequence[Addon]) -> Phase:
    phase = Phase(PHASE_DEPLOY, policy=Policy.FAIL_FAST)
    for addon in addons:
        phase.add(Job(f"deploy-{addon.name}", lambda ctx, cluster, a=addon: deploy_addon(a, cluster), addon=addon.name))
    return phase


# ============================================================================
# Default (readiness)
# ============================================================================

def _pod_ready(pod: dict) -> bool:
    status = pod.get("status") or {}
    phase = status.get("phase")
    if phase == "Succeeded":
        return True
    if phase != "Running":
        return False
    containers = status.get("containerStatuses") or []
    return bool(containers) and all(c.get("ready") for c in containers)


def addon_ready(addon: Addon, cluster: ClusterHandle) -> bool:
    """True once the addon has pods and every one of them is ready.

    Pods are matched by the ``app.kubernetes.io/instance`` label, falling
    back to the legacy ``release`` label used by older charts.

    Raises:
        FatalError: If the API server cannot be reached.
        CommandError: If the pods cannot be listed.
    """
    pods: list[dict] = []
    for label in (LABEL_INSTANCE, LABEL_RELEASE):
        selector = f"{label}={addon.release}"
        found = _observe(
            lambda: get_resource("pods", None, addon.namespace, cluster.kubeconfig, selector=selector),
            cluster,
        )
        pods = found.get("items") or []
        if pods:
            break
    return bool(pods) and all(_pod_ready(pod) for pod in pods)


def wait_for_addon(addon: Addon, cluster: ClusterHandle, interval: float, timeout: float) -> None:
    """Block until the addon is ready.

    Raises:
        PollTimeoutError: If the addon is not ready within ``timeout``.
    """
    attempts = poll_until(
        lambda: addon_ready(addon, cluster),
        interval=interval,
        timeout=timeout,
        description=f"addon {addon.name} to become ready",
    )
    console.print(f"[green]   {addon.name} ready after {attempts} check(s)[/green]")


def default_phase(
    addons: Sequence[Addon],
    interval: float = DEFAULT_READY_INTERVAL_SECONDS,
    timeout: float = DEFAULT_READY_TIMEOUT_SECONDS,
) -> Phase:
    phase = Phase(PHASE_DEFAULT, policy=Policy.FAIL_FAST)
    for addon in addons:
        phase.add(Job(
            f"wait-{addon.name}",
            lambda ctx, cluster, a=addon: wait_for_addon(a, cluster, interval, timeout),
            addon=addon.name,
        ))
    return phase


# ============================================================================
# Cleanup
# ============================================================================

def remove_addon(addon: Addon, cluster: ClusterHandle) -> None:
    run_command("helm", "uninstall", addon.release, "--namespace", addon.namespace, kubeconfig=cluster.kubeconfig)


def cleanup_phase(addons: Sequence[Addon]) -> Phase:
    """Uninstall every addon in reverse install order, whatever fails."""
    phase = Phase(PHASE_CLEANUP, policy=Policy.RUN_ALL, cleanup=True, required=False)
    for addon in reversed(addons):
        phase.add(Job(f"remove-{addon.name}", lambda ctx, cluster, a=addon: remove_addon(a, cluster), addon=addon.name))
    return phase


def standard_phases(
    addons: Sequence[Addon],
    ready_interval: float = DEFAULT_READY_INTERVAL_SECONDS,
    ready_timeout: float = DEFAULT_READY_TIMEOUT_SECONDS,
) -> list[Phase]:
    """Validate, Deploy, Default and Cleanup phases for a set of addons."""
    return [
        validate_phase(addons),
        deploy_phase(addons),
        default_phase(addons, ready_interval, ready_timeout),
        cleanup_phase(addons),
    ]


# ============================================================================
# Custom checks
# ============================================================================

def workload_succeeded(cluster: ClusterHandle, name: str, namespace: str = NS_DEFAULT) -> bool:
    """True once the batch Job has at least one successful completion."""
    job = _observe(lambda: get_resource("job", name, namespace, cluster.kubeconfig), cluster)
    return int((job.get("status") or {}).get("succeeded") or 0) >= 1


def manifest_check(
    manifest: Path,
    job_name: str,
    namespace: str = NS_DEFAULT,
    interval: float = DEFAULT_CHECK_INTERVAL_SECONDS,
    timeout: float = DEFAULT_CHECK_TIMEOUT_SECONDS,
) -> Callable[[Any, ClusterHandle], None]:
    """Job function that applies a checker manifest and waits for its Job."""

    def _check(ctx: Any, cluster: ClusterHandle) -> None:
        kubectl("apply", "-f", str(manifest), kubeconfig=cluster.kubeconfig)
        poll_until(
            lambda: workload_succeeded(cluster, job_name, namespace),
            interval=interval,
            timeout=timeout,
            description=f"{job_name} job to succeed",
        )
        console.print(f"[green]✅ {job_name} job succeeded[/green]")

    return _check


def manifest_check_phase(
    name: str,
    manifest: Path,
    job_name: str,
    namespace: str = NS_DEFAULT,
    interval: float = DEFAULT_CHECK_INTERVAL_SECONDS,
    timeout: float = DEFAULT_CHECK_TIMEOUT_SECONDS,
) -> Phase:
    return Phase(name, [Job(job_name, manifest_check(manifest, job_name, namespace, interval, timeout))])
