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

"""Merge CLI options over environment-driven configuration."""

from __future__ import annotations

from typing import Any

from addon_harness.config import HarnessConfig, KindConfig


def _without_none(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def resolve_harness_config(**cli_values: Any) -> HarnessConfig:
    """Build HarnessConfig from ADDON_TEST_* env vars, then apply CLI overrides."""
    harness_cfg = HarnessConfig()
    overrides = _without_none(cli_values)
    if overrides:
        harness_cfg = harness_cfg.model_copy(update=overrides)
    return harness_cfg


def resolve_kind_config(**cli_values: Any) -> KindConfig:
    """Build KindConfig from ADDON_TEST_* env vars, then apply CLI overrides."""
    kind_cfg = KindConfig()
    overrides = _without_none(cli_values)
    if overrides:
        kind_cfg = kind_cfg.model_copy(update=overrides)
    return kind_cfg
