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

"""Test group definitions, resolution against the catalog, and coverage."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

import yaml

from addon_harness import logger
from addon_harness.catalog import Addon, Catalog, Repository
from addon_harness.errors import CompletenessViolation, ConfigurationError


@dataclass(frozen=True)
class AddonRef:
    """An addon named by a group, optionally pinned to a revision."""

    name: str
    revision: str | None = None


GroupDefinitions = Mapping[str, list[AddonRef]]


def _parse_ref(group: str, entry: object) -> AddonRef:
    if isinstance(entry, str) and entry:
        return AddonRef(entry)
    if isinstance(entry, dict) and isinstance(entry.get("name"), str) and entry["name"]:
        revision = entry.get("revision")
        return AddonRef(entry["name"], str(revision) if revision is not None else None)
    raise ConfigurationError("invalid addon entry in group", {"group": group, "entry": entry})


def parse_group_definitions(data: object, source: str = "<memory>") -> dict[str, list[AddonRef]]:
    """Validate raw group data (group name to list of addon entries).

    Entries are either addon names or ``{name, revision}`` mappings.

    Raises:
        ConfigurationError: If the data is not a non-empty mapping of
            non-empty lists of valid entries.
    """
    if not isinstance(data, dict) or not data:
        raise ConfigurationError("group definitions must be a non-empty mapping", {"source": source})
    groups: dict[str, list[AddonRef]] = {}
    for group, entries in data.items():
        if not isinstance(entries, list) or not entries:
            raise ConfigurationError("group must list at least one addon", {"source": source, "group": group})
        groups[str(group)] = [_parse_ref(str(group), entry) for entry in entries]
    return groups


def load_group_definitions(path: Path) -> dict[str, list[AddonRef]]:
    """Load group definitions from a YAML file.

    Raises:
        ConfigurationError: If the file is missing, not YAML, or malformed.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as err:
        raise ConfigurationError("cannot read group definitions", {"file": path}) from err
    except yaml.YAMLError as err:
        raise ConfigurationError("group definitions are not valid YAML", {"file": path}) from err
    groups = parse_group_definitions(data, str(path))
    logger.info("Loaded %d test groups from %s", len(groups), path)
    return groups


def find_unhandled(catalog_names: Iterable[str], definitions: GroupDefinitions) -> list[str]:
    """Return the sorted catalog addon names that no group mentions."""
    covered = {ref.name for refs in definitions.values() for ref in refs}
    return sorted({name for name in catalog_names if name not in covered})


class GroupResolver:
    """Maps test groups to concrete addons from a catalog."""

    def __init__(self, catalog: Catalog, definitions: GroupDefinitions) -> None:
        self.catalog = catalog
        self.definitions = definitions

    def group_names(self) -> list[str]:
        return sorted(self.definitions)

    def resolve(self, group: str) -> list[Addon]:
        """Resolve a group to fresh copies of its addons.

        The most current revision is used unless the group pins one.

        Raises:
            ConfigurationError: If the group or one of its addons is unknown.
        """
        refs = self.definitions.get(group)
        if refs is None:
            raise ConfigurationError("unknown test group", {"group": group, "known": ", ".join(self.group_names())})
        addons = []
        for ref in refs:
            revisions = self.catalog.get(ref.name)
            if ref.revision is None:
                addon = revisions[0]
            else:
                matches = [a for a in revisions if a.revision == ref.revision]
                if not matches:
                    raise ConfigurationError(
                        "addon revision not found in catalog",
                        {"group": group, "addon": ref.name, "revision": ref.revision},
                    )
                addon = matches[0]
            addons.append(addon.copy())
        return addons

    def resolve_all(self) -> dict[str, list[Addon]]:
        return {group: self.resolve(group) for group in self.group_names()}

    def find_unhandled(self, repository: Repository | Catalog | None = None) -> list[str]:
        """Addons of ``repository`` (default: the catalog) in no group."""
        source = repository if repository is not None else self.catalog
        return find_unhandled(source.list_addons(), self.definitions)

    def check_completeness(self, repository: Repository | Catalog | None = None) -> None:
        """Raise CompletenessViolation if any addon is in no group."""
        unhandled = self.find_unhandled(repository)
        if unhandled:
            raise CompletenessViolation(unhandled)
