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

"""Addon catalog: addon records, repositories, and the merged catalog."""

from __future__ import annotations

import re
import shutil
import tempfile
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Protocol

import sh
import yaml

from addon_harness import console, logger
from addon_harness.constants import ANNOTATION_REVISION, NS_DEFAULT
from addon_harness.errors import ConfigurationError

ADDON_KINDS = ("Addon", "ClusterAddon")


# ============================================================================
# Addon records
# ============================================================================

@dataclass
class ChartReference:
    """Helm chart an addon is installed from.

    Attributes:
        chart: Chart name, optionally prefixed by a repo alias.
        repo: Chart repository URL.
        version: Chart version.
        values: Raw values document, or None for chart defaults.
    """

    chart: str
    repo: str = ""
    version: str = ""
    values: str | None = None


@dataclass
class Addon:
    """One revision of a deployable addon.

    Attributes:
        name: Unique addon name.
        revision: Addon revision (e.g. ``0.8.1-1``).
        namespace: Namespace the addon installs into.
        chart: Chart reference with the values to deploy.
        source: Manifest file the addon was loaded from.
    """

    name: str
    revision: str
    namespace: str
    chart: ChartReference
    source: Path | None = None

    @property
    def release(self) -> str:
        return self.name

    def override_values(self, payload: str) -> None:
        self.chart.values = payload

    def copy(self) -> Addon:
        """Return an independent copy, safe to mutate during a test run."""
        return replace(self, chart=replace(self.chart))


def revision_sort_key(revision: str) -> tuple:
    """Natural sort key for revision strings (``1.10.0-2`` > ``1.9.3-1``)."""
    return tuple(
        (1, int(part)) if part.isdigit() else (0, part)
        for part in re.findall(r"\d+|[A-Za-z]+", revision)
    )


def addon_from_manifest(doc: dict, source: Path | None = None) -> Addon | None:
    """Build an Addon from a parsed manifest, or None if it is not an addon.

    Only the name, revision, namespace, and chart reference are read.

    Raises:
        ConfigurationError: If the manifest has no name.
    """
    if not isinstance(doc, dict) or doc.get("kind") not in ADDON_KINDS:
        return None
    metadata = doc.get("metadata") or {}
    name = metadata.get("name")
    if not name:
        raise ConfigurationError("addon manifest has no metadata.name", {"file": source})
    annotations = metadata.get("annotations") or {}
    chart_ref = (doc.get("spec") or {}).get("chartReference") or {}
    return Addon(
        name=name,
        revision=str(annotations.get(ANNOTATION_REVISION, "")),
        namespace=metadata.get("namespace") or NS_DEFAULT,
        chart=ChartReference(
            chart=chart_ref.get("chart", ""),
            repo=chart_ref.get("repo", ""),
            version=str(chart_ref.get("version", "")),
            values=chart_ref.get("values"),
        ),
        source=source,
    )


# ============================================================================
# Repositories
# ============================================================================

class Repository(Protocol):
    """A source of addons keyed by name, revisions most current first."""

    name: str

    def list_addons(self) -> dict[str, list[Addon]]: ...

    def get(self, name: str) -> list[Addon]: ...


class LocalRepository:
    """Addons read from ``<path>/<addon>/**/*.yaml`` manifests."""

    def __init__(self, name: str, path: Path) -> None:
        self.name = name
        self.path = Path(path)
        self._addons: dict[str, list[Addon]] | None = None

    def list_addons(self) -> dict[str, list[Addon]]:
        if self._addons is None:
            self._addons = self._load()
        return self._addons

    def get(self, name: str) -> list[Addon]:
        return self.list_addons().get(name, [])

    def _load(self) -> dict[str, list[Addon]]:
        if not self.path.is_dir():
            raise ConfigurationError("addon repository directory not found", {"repository": self.name, "path": self.path})
        addons: dict[str, list[Addon]] = {}
        seen: set[tuple[str, str]] = set()
        for manifest in sorted(self.path.rglob("*.yaml")):
            try:
                with open(manifest) as f:
                    docs = list(yaml.safe_load_all(f))
            except yaml.YAMLError as err:
                raise ConfigurationError("invalid addon manifest", {"file": manifest, "error": err}) from err
            for doc in docs:
                addon = addon_from_manifest(doc, manifest)
                if addon is None:
                    continue
                if (addon.name, addon.revision) in seen:
                    raise ConfigurationError(
                        "duplicate addon revision",
                        {"addon": addon.name, "revision": addon.revision, "file": manifest},
                    )
                seen.add((addon.name, addon.revision))
                addons.setdefault(addon.name, []).append(addon)
        for revisions in addons.values():
            revisions.sort(key=lambda a: revision_sort_key(a.revision), reverse=True)
        logger.info("Loaded %d addons from repository %s", len(addons), self.name)
        return addons


class GitRepository:
    """Addons from a remote git repository, cloned on first use."""

    def __init__(self, url: str, ref: str, remote: str = "origin", subdir: str = "addons") -> None:
        self.name = url
        self.url = url
        self.ref = ref
        self.remote = remote
        self.subdir = subdir
        self._checkout: Path | None = None
        self._local: LocalRepository | None = None

    def list_addons(self) -> dict[str, list[Addon]]:
        return self._repository().list_addons()

    def get(self, name: str) -> list[Addon]:
        return self._repository().get(name)

    def close(self) -> None:
        """Remove the local checkout."""
        if self._checkout is not None:
            shutil.rmtree(self._checkout, ignore_errors=True)
            self._checkout = None
            self._local = None

    def _repository(self) -> LocalRepository:
        if self._local is None:
            self._checkout = Path(tempfile.mkdtemp(prefix="addon-repo-"))
            console.print(f"[yellow]ℹ️  Cloning {self.url} ({self.ref})...[/yellow]")
            try:
                sh.git(
                    "clone", "--depth", "1",
                    "--branch", self.ref,
                    "--origin", self.remote,
                    self.url, str(self._checkout),
                )
            except (sh.ErrorReturnCode, sh.CommandNotFound) as err:
                self.close()
                raise ConfigurationError("failed to clone addon repository", {"url": self.url, "ref": self.ref}) from err
            self._local = LocalRepository(self.url, self._checkout / self.subdir)
        return self._local


# ============================================================================
# Catalog
# ============================================================================

class Catalog:
    """Read-only merge of several repositories.

    When more than one repository provides an addon, the first repository
    given wins and its revisions are used.
    """

    def __init__(self, *repositories: Repository) -> None:
        if not repositories:
            raise ConfigurationError("a catalog needs at least one repository")
        self.repositories = repositories
        self._addons: dict[str, list[Addon]] | None = None

    def list_addons(self) -> dict[str, list[Addon]]:
        if self._addons is None:
            merged: dict[str, list[Addon]] = {}
            for repo in self.repositories:
                for name, revisions in repo.list_addons().items():
                    merged.setdefault(name, revisions)
            self._addons = merged
        return self._addons

    def names(self) -> list[str]:
        return sorted(self.list_addons())

    def get(self, name: str) -> list[Addon]:
        """Return an addon's revisions, most current first.

        Raises:
            ConfigurationError: If no repository provides the addon.
        """
        revisions = self.list_addons().get(name)
        if not revisions:
            raise ConfigurationError("addon not found in catalog", {"addon": name})
        return revisions

    def close(self) -> None:
        for repo in self.repositories:
            close = getattr(repo, "close", None)
            if close is not None:
                close()
