"""Shared fixtures for addon_harness tests.

Unit tests never touch a real cluster: provisioning, kubectl, and helm are
replaced by in-memory fakes.

Note:
    No __init__.py files in test directories - pytest uses importlib mode.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from textwrap import dedent

import pytest

from addon_harness.catalog import Addon, Catalog, ChartReference, LocalRepository
from addon_harness.cluster import ClusterHandle
from addon_harness.config import HarnessConfig, KindConfig
from addon_harness.errors import CleanupFailure, ProvisioningError
from addon_harness.groups import GroupResolver, parse_group_definitions
from addon_harness.runner import RunContext
from addon_harness.streamer import LogStreamer


class FakeProvisioner:
    """Records provision/teardown calls instead of creating clusters."""

    def __init__(self, fail_provision: bool = False, fail_teardown: bool = False) -> None:
        self.fail_provision = fail_provision
        self.fail_teardown = fail_teardown
        self.provisioned: list[ClusterHandle] = []
        self.torn_down: list[ClusterHandle] = []

    def provision(self, version: str, kind_cfg: KindConfig) -> ClusterHandle:
        if self.fail_provision:
            raise ProvisioningError("failed to create kind cluster", {"cluster": "fake"})
        cluster = ClusterHandle(f"fake-{len(self.provisioned)}", Path("/tmp/fake-kubeconfig"), version, "https://127.0.0.1:6443")
        self.provisioned.append(cluster)
        return cluster

    def teardown(self, cluster: ClusterHandle) -> None:
        self.torn_down.append(cluster)
        if self.fail_teardown:
            raise CleanupFailure("failed to delete kind cluster", {"cluster": cluster.name})


@pytest.fixture
def cluster() -> ClusterHandle:
    return ClusterHandle("unit", Path("/tmp/unit-kubeconfig"), "1.16.4", "https://127.0.0.1:6443")


@pytest.fixture
def make_addon() -> Callable[..., Addon]:
    def _make(name: str, revision: str = "1.0.0-1", namespace: str = "kubeaddons", values: str | None = None) -> Addon:
        return Addon(
            name=name,
            revision=revision,
            namespace=namespace,
            chart=ChartReference(chart=f"stable/{name}", repo="https://charts.example.com", version="1.0.0", values=values),
        )

    return _make


@pytest.fixture
def addons_dir(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing addon manifests under ``tmp_path/addons``."""
    root = tmp_path / "addons"

    def _write(name: str, revision: str = "1.0.0-1", values: str | None = None, kind: str = "Addon") -> Path:
        target = root / name / f"{name}-{revision}.yaml"
        target.parent.mkdir(parents=True, exist_ok=True)
        values_block = ""
        if values is not None:
            indented = "\n".join(f"      {line}" for line in values.splitlines())
            values_block = f"    values: |\n{indented}\n"
        target.write_text(dedent(f"""\
            apiVersion: kubeaddons.mesosphere.io/v1beta1
            kind: {kind}
            metadata:
              name: {name}
              namespace: kubeaddons
              annotations:
                catalog.kubeaddons.mesosphere.io/addon-revision: "{revision}"
            spec:
              chartReference:
                chart: stable/{name}
                repo: https://charts.example.com
                version: 1.0.0
            """) + values_block)
        return root

    root.mkdir(parents=True, exist_ok=True)
    _write.root = root  # type: ignore[attr-defined]
    return _write


@pytest.fixture
def quiet_streamer() -> Callable[[ClusterHandle], LogStreamer]:
    """Streamer factory whose source yields nothing."""
    created: list[LogStreamer] = []

    def _factory(cluster: ClusterHandle) -> LogStreamer:
        streamer = LogStreamer(cluster.kubeconfig, source=lambda: iter(()), restart_wait=0.01)
        created.append(streamer)
        return streamer

    _factory.created = created  # type: ignore[attr-defined]
    return _factory


@pytest.fixture
def run_context(addons_dir) -> Callable[..., RunContext]:
    """Build a RunContext over a local catalog and inline group definitions."""

    def _build(groups: dict, addons: list[str], overrides: dict[str, str] | None = None) -> RunContext:
        for name in addons:
            addons_dir(name)
        local = LocalRepository("local", addons_dir.root)
        catalog = Catalog(local)
        resolver = GroupResolver(catalog, parse_group_definitions(groups))
        return RunContext(
            catalog=catalog,
            resolver=resolver,
            overrides=overrides or {},
            harness_cfg=HarnessConfig(ready_interval=0.01, ready_timeout=0.05, remote_url=""),
            kind_cfg=KindConfig(),
            local=local,
        )

    return _build


@pytest.fixture
def fake_provisioner() -> type[FakeProvisioner]:
    return FakeProvisioner
