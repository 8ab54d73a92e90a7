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

"""Constants, CI override loading, and default locations."""

from __future__ import annotations

from pathlib import Path

import yaml

# -- Resolved paths --
PACKAGE_DIR = Path(__file__).resolve().parent
E2E_DIR = PACKAGE_DIR / "e2e"

OVERRIDES_FILE = PACKAGE_DIR / "overrides.yaml"


def load_overrides(path: Path = OVERRIDES_FILE) -> dict[str, str]:
    """Load CI values overrides from a YAML file.

    The file maps addon names to raw values documents. Each document is kept
    as opaque text and handed to Helm unchanged.

    Args:
        path: Location of the overrides file.

    Returns:
        Mapping of addon name to raw values text. Empty if the file is absent.
    """
    if not path.exists():
        return {}
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    return {str(name): str(payload) for name, payload in data.items()}


# -- Default catalog sources --
DEFAULT_ADDONS_DIR = Path("addons")
DEFAULT_GROUPS_FILE = E2E_DIR / "groups.yaml"
DEFAULT_REMOTE_URL = "https://github.com/mesosphere/kubernetes-base-addons"
DEFAULT_REMOTE_REF = "master"
DEFAULT_REMOTE_NAME = "origin"

# -- Cluster defaults --
DEFAULT_CLUSTER_PREFIX = "addon-test"
DEFAULT_KUBERNETES_VERSION = "1.16.4"
KIND_NODE_IMAGE = "kindest/node"
KIND_CLUSTER_LABEL = "io.x-k8s.kind.cluster"
CLUSTER_WAIT = "300s"
DEFAULT_CLUSTER_CREATE_MAX_RETRIES = 2
CLUSTER_CREATE_RETRY_WAIT_SECONDS = 10

# -- Controller bundle --
DEFAULT_CONTROLLER_BUNDLE = "https://mesosphere.github.io/kubeaddons/bundle.yaml"
PATCH_STORAGE_CLASS = '{"metadata": {"annotations":{"storageclass.kubernetes.io/is-default-class":"false"}}}'

# -- Readiness polling --
DEFAULT_READY_TIMEOUT_SECONDS = 600
DEFAULT_READY_INTERVAL_SECONDS = 5
DEFAULT_CHECK_TIMEOUT_SECONDS = 60
DEFAULT_CHECK_INTERVAL_SECONDS = 1

# -- Log streaming --
STREAM_RESTART_WAIT_SECONDS = 2

# -- Namespaces --
NS_DEFAULT = "default"

# -- Labels --
LABEL_INSTANCE = "app.kubernetes.io/instance"
LABEL_RELEASE = "release"

# -- Addon manifest keys --
ANNOTATION_REVISION = "catalog.kubeaddons.mesosphere.io/addon-revision"

# -- Phase names --
PHASE_VALIDATE = "validate"
PHASE_DEPLOY = "deploy"
PHASE_DEFAULT = "default"
PHASE_CLEANUP = "cleanup"

# -- Custom checks --
THANOS_CHECKER_JOB = "thanos-checker"
THANOS_CHECKER_MANIFEST = E2E_DIR / "artifacts" / "thanos-checker.yaml"
