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

"""CI values overrides for addons under test."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol, TypeVar

from addon_harness import logger


class HasOverridableValues(Protocol):
    name: str

    def override_values(self, payload: str) -> None: ...


T = TypeVar("T", bound=HasOverridableValues)


def apply_overrides(addons: Iterable[T], overrides: Mapping[str, str]) -> list[T]:
    """Replace the values of every addon that has an override entry.

    Addons are mutated in place; pass copies, never catalog entries.

    Args:
        addons: Addons resolved for one test run.
        overrides: Addon name to raw values document.

    Returns:
        The addons, in the order given.
    """
    result = list(addons)
    for addon in result:
        payload = overrides.get(addon.name)
        if payload is not None:
            logger.info("Applying CI values override to %s", addon.name)
            addon.override_values(payload)
    return result
