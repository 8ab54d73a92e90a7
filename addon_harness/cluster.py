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

"""kind cluster lifecycle and cluster-wide prerequisites."""

from __future__ import annotations

import shutil
import tempfile
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import docker
import sh
import yaml
from rich.panel import Panel
from tenacity import retry, stop_after_attempt, wait_fixed

from addon_harness import console, logger
from addon_harness.config import HarnessConfig, KindConfig
from addon_harness.constants import (
    CLUSTER_CREATE_RETRY_WAIT_SECONDS,
    KIND_CLUSTER_LABEL,
    PATCH_STORAGE_CLASS,
)
from addon_harness.errors import CleanupFailure, CommandError, ProvisioningError
from addon_harness.utils import kubectl


@dataclass(frozen=True)
class ClusterHandle:
    """A live test cluster.

    Attributes:
        name: kind cluster name.
        kubeconfig: Kubeconfig file with the cluster's credentials.
        kubernetes_version: Kubernetes version the nodes run.
        endpoint: API server URL.
    """

    name: str
    kubeconfig: Path
    kubernetes_version: str
    endpoint: str = ""


class Provisioner(Protocol):
    def provision(self, version: str, kind_cfg: KindConfig) -> ClusterHandle: ...

    def teardown(self, cluster: ClusterHandle) -> None: ...


def _api_endpoint(kubeconfig: Path) -> str:
    """Read the API server URL from a kubeconfig file."""
    try:
        with open(kubeconfig) as f:
            data = yaml.safe_load(f) or {}
        return data["clusters"][0]["cluster"]["server"]
    except (OSError, yaml.YAMLError, KeyError, IndexError, TypeError):
        return ""


# ============================================================================
# kind provisioning
# ============================================================================

class KindProvisioner:
    """Creates and deletes uniquely named kind clusters."""

    def provision(self, version: str, kind_cfg: KindConfig) -> ClusterHandle:
        """Create a kind cluster with retry logic.

        A failed creation is cleaned up best-effort before raising.

        Args:
            version: Kubernetes version (e.g. ``1.16.4``).
            kind_cfg: kind configuration including retry count.

        Raises:
            ProvisioningError: If the cluster cannot be created after all retries.
        """
        name = f"{kind_cfg.cluster_prefix}-{uuid.uuid4().hex[:8]}"
        workdir = Path(tempfile.mkdtemp(prefix=f"{name}-"))
        kubeconfig = workdir / "kubeconfig"
        image = f"{kind_cfg.node_image}:v{version.lstrip('v')}"
        console.print(Panel.fit(f"Creating kind cluster {name} ({image})", style="bold blue"))

        @retry(
            stop=stop_after_attempt(kind_cfg.max_retries),
            wait=wait_fixed(CLUSTER_CREATE_RETRY_WAIT_SECONDS),
            reraise=True,
        )
        def _attempt() -> None:
            try:
                sh.kind("delete", "cluster", "--name", name)
            except sh.ErrorReturnCode:
                console.print("[yellow]   No existing cluster found[/yellow]")
            args = [
                "create", "cluster",
                "--name", name,
                "--image", image,
                "--kubeconfig", str(kubeconfig),
                "--wait", kind_cfg.wait,
            ]
            if kind_cfg.config_file is not None:
                args += ["--config", str(kind_cfg.config_file)]
            sh.kind(*args)

        try:
            _attempt()
        except (sh.ErrorReturnCode, sh.CommandNotFound) as err:
            self._cleanup_partial(name)
            shutil.rmtree(workdir, ignore_errors=True)
            raise ProvisioningError("failed to create kind cluster", {"cluster": name, "image": image}) from err

        cluster = ClusterHandle(name, kubeconfig, version, _api_endpoint(kubeconfig))
        console.print(f"[green]✅ Cluster {name} created ({cluster.endpoint or 'endpoint unknown'})[/green]")
        return cluster

    def teardown(self, cluster: ClusterHandle) -> None:
        """Delete the kind cluster and its kubeconfig.

        Raises:
            CleanupFailure: If kind cannot delete the cluster.
        """
        console.print(f"[yellow]ℹ️  Deleting kind cluster '{cluster.name}'...[/yellow]")
        try:
            sh.kind("delete", "cluster", "--name", cluster.name)
        except (sh.ErrorReturnCode, sh.CommandNotFound) as err:
            self._cleanup_partial(cluster.name)
            raise CleanupFailure("failed to delete kind cluster", {"cluster": cluster.name}) from err
        finally:
            shutil.rmtree(cluster.kubeconfig.parent, ignore_errors=True)
        console.print(f"[green]✅ Cluster '{cluster.name}' deleted[/green]")

    def _cleanup_partial(self, name: str) -> None:
        """Remove node containers left behind by a failed create or delete."""
        try:
            docker_client = docker.from_env()
        except Exception as e:
            logger.warning("Cannot connect to Docker to clean up cluster %s: %s", name, e)
            return
        try:
            containers = docker_client.containers.list(all=True, filters={"label": f"{KIND_CLUSTER_LABEL}={name}"})
            for container in containers:
                console.print(f"[yellow]   Removing leftover node {container.name}[/yellow]")
                container.remove(force=True)
        except docker.errors.APIError as e:
            logger.warning("Failed to remove leftover nodes of cluster %s: %s", name, e)
        finally:
            docker_client.close()


# ============================================================================
# Scoped acquisition
# ============================================================================

@contextmanager
def provisioned_cluster(provisioner: Provisioner, version: str, kind_cfg: KindConfig) -> Iterator[ClusterHandle]:
    """Provision a cluster for the duration of a ``with`` block.

    Teardown is called exactly once on every exit path. When the block
    raises, a teardown failure is logged and the block's error propagates;
    otherwise the teardown failure itself is raised.

    Raises:
        ProvisioningError: If the cluster cannot be created.
        CleanupFailure: If teardown fails after the block succeeded.
    """
    cluster = provisioner.provision(version, kind_cfg)
    try:
        yield cluster
    except BaseException:
        try:
            provisioner.teardown(cluster)
        except CleanupFailure as err:
            logger.error("Teardown of %s failed after an earlier error: %s", cluster.name, err)
        raise
    provisioner.teardown(cluster)


# ============================================================================
# Prerequisites
# ============================================================================

def install_prerequisites(cluster: ClusterHandle, harness_cfg: HarnessConfig) -> None:
    """Apply the controller bundle and cluster-wide tweaks.

    Raises:
        ProvisioningError: If the bundle cannot be applied.
    """
    console.print(Panel.fit("Installing addon controller bundle", style="bold blue"))
    try:
        kubectl("apply", "-f", harness_cfg.controller_bundle, kubeconfig=cluster.kubeconfig)
        if harness_cfg.disable_default_storage_class:
            kubectl("patch", "storageclass", "standard", "-p", PATCH_STORAGE_CLASS, kubeconfig=cluster.kubeconfig)
    except CommandError as err:
        raise ProvisioningError("failed to install cluster prerequisites", {"cluster": cluster.name}) from err
    console.print("[green]✅ Controller bundle installed[/green]")
