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

"""Configuration classes for catalog sources, clusters, and polling."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.table import Table

from addon_harness import console
from addon_harness.constants import (
    CLUSTER_WAIT,
    DEFAULT_ADDONS_DIR,
    DEFAULT_CHECK_INTERVAL_SECONDS,
    DEFAULT_CHECK_TIMEOUT_SECONDS,
    DEFAULT_CLUSTER_CREATE_MAX_RETRIES,
    DEFAULT_CLUSTER_PREFIX,
    DEFAULT_CONTROLLER_BUNDLE,
    DEFAULT_GROUPS_FILE,
    DEFAULT_KUBERNETES_VERSION,
    DEFAULT_READY_INTERVAL_SECONDS,
    DEFAULT_READY_TIMEOUT_SECONDS,
    DEFAULT_REMOTE_NAME,
    DEFAULT_REMOTE_REF,
    DEFAULT_REMOTE_URL,
    KIND_NODE_IMAGE,
)


# ============================================================================
# Configuration classes
# ============================================================================

class KindConfig(BaseSettings):
    """kind cluster configuration, auto-loaded from ADDON_TEST_* env vars.

    Attributes:
        cluster_prefix: Prefix for generated cluster names.
        kubernetes_version: Kubernetes version of the node image.
        node_image: Node image repository; the version is used as its tag.
        wait: How long ``kind create cluster`` waits for the control plane.
        max_retries: Maximum cluster creation attempts.
        config_file: Optional kind cluster config file.
    """

    model_config = SettingsConfigDict(env_prefix="ADDON_TEST_", extra="ignore")

    cluster_prefix: str = Field(default=DEFAULT_CLUSTER_PREFIX, pattern=r"^[a-z0-9][a-z0-9-]*$")
    kubernetes_version: str = Field(default=DEFAULT_KUBERNETES_VERSION, pattern=r"^v?\d+\.\d+\.\d+$")
    node_image: str = KIND_NODE_IMAGE
    wait: str = CLUSTER_WAIT
    max_retries: int = Field(default=DEFAULT_CLUSTER_CREATE_MAX_RETRIES, ge=1, le=10)
    config_file: Path | None = None


class HarnessConfig(BaseSettings):
    """Catalog sources and test timing, auto-loaded from ADDON_TEST_* env vars.

    Attributes:
        addons_dir: Local addon repository directory.
        groups_file: YAML file with the test group definitions.
        remote_url: Remote addon repository URL, or empty to skip it.
        remote_ref: Git ref to check out from the remote repository.
        remote_name: Git remote name.
        controller_bundle: Manifest URL of the addon controller bundle.
        disable_default_storage_class: Unset kind's default storage class.
        ready_timeout: Seconds to wait for each addon to become ready.
        ready_interval: Seconds between readiness checks.
        check_timeout: Seconds to wait for custom check workloads.
        check_interval: Seconds between custom check polls.
    """

    model_config = SettingsConfigDict(env_prefix="ADDON_TEST_", extra="ignore")

    addons_dir: Path = DEFAULT_ADDONS_DIR
    groups_file: Path = DEFAULT_GROUPS_FILE
    remote_url: str = DEFAULT_REMOTE_URL
    remote_ref: str = DEFAULT_REMOTE_REF
    remote_name: str = DEFAULT_REMOTE_NAME
    controller_bundle: str = DEFAULT_CONTROLLER_BUNDLE
    disable_default_storage_class: bool = False
    ready_timeout: float = Field(default=DEFAULT_READY_TIMEOUT_SECONDS, gt=0)
    ready_interval: float = Field(default=DEFAULT_READY_INTERVAL_SECONDS, gt=0)
    check_timeout: float = Field(default=DEFAULT_CHECK_TIMEOUT_SECONDS, gt=0)
    check_interval: float = Field(default=DEFAULT_CHECK_INTERVAL_SECONDS, gt=0)


def display_config(harness_cfg: HarnessConfig, kind_cfg: KindConfig) -> None:
    """Print the resolved configuration as a table."""
    table = Table(title="Addon test configuration", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Addons directory", str(harness_cfg.addons_dir))
    table.add_row("Groups file", str(harness_cfg.groups_file))
    table.add_row("Remote repository", harness_cfg.remote_url or "(none)")
    table.add_row("Remote ref", harness_cfg.remote_ref)
    table.add_row("Controller bundle", harness_cfg.controller_bundle)
    table.add_row("Kubernetes version", kind_cfg.kubernetes_version)
    table.add_row("Ready timeout", f"{harness_cfg.ready_timeout:g}s")
    console.print(table)
