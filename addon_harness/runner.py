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

"""Test runner that drives one group through a fresh cluster."""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from rich.panel import Panel

from addon_harness import console, logger
from addon_harness.catalog import Addon, Catalog, GitRepository, LocalRepository, Repository
from addon_harness.cluster import (
    ClusterHandle,
    KindProvisioner,
    Provisioner,
    install_prerequisites,
    provisioned_cluster,
)
from addon_harness.config import HarnessConfig, KindConfig
from addon_harness.constants import THANOS_CHECKER_JOB, THANOS_CHECKER_MANIFEST, load_overrides
from addon_harness.errors import CleanupFailure, HarnessError, ProvisioningError
from addon_harness.groups import GroupResolver, load_group_definitions
from addon_harness.harness import HarnessResult, LifecycleHarness, Phase
from addon_harness.jobs import manifest_check_phase, standard_phases
from addon_harness.overrides import apply_overrides
from addon_harness.streamer import LogStreamer


# ============================================================================
# Run context
# ============================================================================

@dataclass(frozen=True)
class RunContext:
    """Everything a group run needs, built once and shared read-only.

    Attributes:
        catalog: Merged addon catalog.
        resolver: Group resolver over the catalog.
        overrides: CI values overrides by addon name.
        harness_cfg: Catalog sources and timing.
        kind_cfg: Cluster settings.
        local: The local repository, used for the coverage check.
    """

    catalog: Catalog
    resolver: GroupResolver
    overrides: Mapping[str, str] = field(default_factory=dict)
    harness_cfg: HarnessConfig = field(default_factory=HarnessConfig)
    kind_cfg: KindConfig = field(default_factory=KindConfig)
    local: Repository | None = None

    @classmethod
    def from_config(
        cls,
        harness_cfg: HarnessConfig | None = None,
        kind_cfg: KindConfig | None = None,
        overrides: Mapping[str, str] | None = None,
    ) -> RunContext:
        """Load the catalog and group definitions.

        Every group is resolved once so that a bad definition fails here,
        before any cluster exists.

        Raises:
            ConfigurationError: If a catalog source or the groups file is unusable.
        """
        harness_cfg = harness_cfg or HarnessConfig()
        kind_cfg = kind_cfg or KindConfig()
        local = LocalRepository("local", harness_cfg.addons_dir)
        repositories: list[Repository] = [local]
        if harness_cfg.remote_url:
            repositories.append(GitRepository(harness_cfg.remote_url, harness_cfg.remote_ref, harness_cfg.remote_name))
        catalog = Catalog(*repositories)
        resolver = GroupResolver(catalog, load_group_definitions(harness_cfg.groups_file))
        resolver.resolve_all()
        return cls(
            catalog=catalog,
            resolver=resolver,
            overrides=load_overrides() if overrides is None else overrides,
            harness_cfg=harness_cfg,
            kind_cfg=kind_cfg,
            local=local,
        )


CustomPhases = Callable[[RunContext, list[Addon]], Sequence[Phase]]


def _thanos_check(ctx: RunContext, addons: list[Addon]) -> Sequence[Phase]:
    return [manifest_check_phase(
        "thanos-check",
        THANOS_CHECKER_MANIFEST,
        THANOS_CHECKER_JOB,
        interval=ctx.harness_cfg.check_interval,
        timeout=ctx.harness_cfg.check_timeout,
    )]


GROUP_CHECKS: dict[str, CustomPhases] = {
    "kommander": _thanos_check,
}


# ============================================================================
# Group results
# ============================================================================

@dataclass
class GroupResult:
    """Outcome of one group run.

    Attributes:
        group: Group name.
        harness: Harness outcome, or None if the phases never ran.
        error: Provisioning error that stopped the run before the phases.
        teardown_error: Cluster teardown failure.
    """

    group: str
    harness: HarnessResult | None = None
    error: HarnessError | None = None
    teardown_error: CleanupFailure | None = None

    @property
    def passed(self) -> bool:
        return self.error is None and self.harness is not None and self.harness.passed

    @property
    def clean(self) -> bool:
        return self.teardown_error is None and (self.harness is None or self.harness.clean)

    def raise_for_failure(self) -> None:
        """Raise the first failure: provisioning, phases, cleanup, teardown."""
        if self.error is not None:
            raise self.error
        if self.harness is not None:
            self.harness.raise_for_failure()
        if self.teardown_error is not None:
            raise self.teardown_error


# ============================================================================
# Running groups
# ============================================================================

def run_group(
    ctx: RunContext,
    group: str,
    custom_phases: CustomPhases | None = None,
    provisioner: Provisioner | None = None,
    streamer_factory: Callable[[ClusterHandle], LogStreamer] | None = None,
) -> GroupResult:
    """Test one group on a freshly provisioned cluster.

    The cluster is torn down exactly once whatever happens, and the log
    streamer has stopped by the time this returns.

    Args:
        ctx: Shared run context.
        group: Name of the group to test.
        custom_phases: Builds extra phases for the group; defaults to the
            group's registered checks.
        provisioner: Cluster provisioner; defaults to kind.
        streamer_factory: Builds the log streamer for the cluster.

    Raises:
        ConfigurationError: If the group cannot be resolved.
    """
    console.print(Panel.fit(f"Testing group {group}", style="bold blue"))
    addons = ctx.resolver.resolve(group)
    custom_phases = custom_phases or GROUP_CHECKS.get(group)
    provisioner = provisioner or KindProvisioner()
    streamer_factory = streamer_factory or (lambda cluster: LogStreamer(cluster.kubeconfig))
    result = GroupResult(group)

    try:
        with provisioned_cluster(provisioner, ctx.kind_cfg.kubernetes_version, ctx.kind_cfg) as cluster:
            install_prerequisites(cluster, ctx.harness_cfg)
            apply_overrides(addons, ctx.overrides)

            streamer = streamer_factory(cluster).start()
            try:
                harness = LifecycleHarness(group)
                harness.load(*standard_phases(addons, ctx.harness_cfg.ready_interval, ctx.harness_cfg.ready_timeout))
                if custom_phases is not None:
                    harness.load(*custom_phases(ctx, addons))
                result.harness = harness.run(ctx, cluster)
            finally:
                streamer.request_stop()
                streamer.join()
    except ProvisioningError as err:
        logger.error("Group %s could not be provisioned: %s", group, err)
        result.error = err
    except CleanupFailure as err:
        logger.error("Group %s left its cluster behind: %s", group, err)
        result.teardown_error = err

    _report(result)
    return result


def _report(result: GroupResult) -> None:
    if result.passed and result.clean:
        console.print(f"[green]✅ Group {result.group} passed[/green]")
    elif result.passed:
        console.print(f"[yellow]⚠️  Group {result.group} passed but cleanup failed[/yellow]")
    else:
        failure = result.error or (result.harness.failure() if result.harness else None)
        console.print(f"[red]❌ Group {result.group} failed: {failure}[/red]")


def run_groups(
    ctx: RunContext,
    groups: Sequence[str],
    parallel: bool = False,
    provisioner_factory: Callable[[], Provisioner] = KindProvisioner,
    streamer_factory: Callable[[ClusterHandle], LogStreamer] | None = None,
) -> dict[str, GroupResult]:
    """Run several groups, sequentially or each on its own thread.

    Parallel runs buffer each group's console output and print it as one
    block per group, in the order the groups were given.

    Every group is resolved before the first cluster is created, so an
    unknown group or addon stops the run with nothing provisioned.

    Returns:
        Group name to result, in the order given.

    Raises:
        ConfigurationError: If any of the groups cannot be resolved.
    """
    for group in groups:
        ctx.resolver.resolve(group)

    if not parallel or len(groups) < 2:
        return {
            group: run_group(ctx, group, provisioner=provisioner_factory(), streamer_factory=streamer_factory)
            for group in groups
        }

    results: dict[str, GroupResult] = {}
    outputs: dict[str, str] = {}
    lock = threading.Lock()

    def _run_task(group: str) -> None:
        with console.buffered() as buf:
            group_result = run_group(ctx, group, provisioner=provisioner_factory(), streamer_factory=streamer_factory)
        with lock:
            results[group] = group_result
            outputs[group] = buf.getvalue()

    with ThreadPoolExecutor(max_workers=len(groups)) as executor:
        futures = {executor.submit(_run_task, group): group for group in groups}
        for future in as_completed(futures):
            future.result()

    for group in groups:
        if outputs.get(group):
            console.print(outputs[group], end="", markup=False, highlight=False)
    return {group: results[group] for group in groups}
