"""Tests for group definitions, resolution, and the completeness check."""

from __future__ import annotations

from pathlib import Path

import pytest

from addon_harness.catalog import Catalog, LocalRepository
from addon_harness.constants import DEFAULT_ADDONS_DIR, DEFAULT_GROUPS_FILE, PACKAGE_DIR, THANOS_CHECKER_MANIFEST
from addon_harness.errors import CompletenessViolation, ConfigurationError
from addon_harness.groups import (
    AddonRef,
    GroupResolver,
    find_unhandled,
    load_group_definitions,
    parse_group_definitions,
)


# =============================================================================
# Definitions
# =============================================================================


class TestParseGroupDefinitions:
    def test_plain_names(self) -> None:
        groups = parse_group_definitions({"logging": ["fluentbit", "elasticsearch"]})
        assert groups == {"logging": [AddonRef("fluentbit"), AddonRef("elasticsearch")]}

    def test_pinned_revision(self) -> None:
        groups = parse_group_definitions({"g": [{"name": "thanos", "revision": "0.3.20-1"}]})
        assert groups["g"] == [AddonRef("thanos", "0.3.20-1")]

    @pytest.mark.parametrize(
        "data",
        [
            None,
            [],
            {},
            {"g": []},
            {"g": "metallb"},
            {"g": [42]},
            {"g": [{"revision": "1"}]},
            {"g": [""]},
        ],
    )
    def test_malformed_definitions_are_rejected(self, data: object) -> None:
        with pytest.raises(ConfigurationError):
            parse_group_definitions(data)

    def test_load_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "groups.yaml"
        path.write_text("kommander:\n  - cert-manager\n  - metallb\n")
        assert load_group_definitions(path) == {"kommander": [AddonRef("cert-manager"), AddonRef("metallb")]}

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="cannot read"):
            load_group_definitions(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "groups.yaml"
        path.write_text("kommander: [metallb\n")
        with pytest.raises(ConfigurationError, match="not valid YAML"):
            load_group_definitions(path)

    def test_shipped_groups_file_parses(self) -> None:
        groups = load_group_definitions(DEFAULT_GROUPS_FILE)
        assert "kommander" in groups

    def test_shipped_files_live_in_the_package(self) -> None:
        for path in (DEFAULT_GROUPS_FILE, THANOS_CHECKER_MANIFEST):
            assert path.is_file()
            assert path.is_relative_to(PACKAGE_DIR)

    def test_addons_dir_follows_working_directory(self) -> None:
        assert not DEFAULT_ADDONS_DIR.is_absolute()


# =============================================================================
# Completeness
# =============================================================================


class TestFindUnhandled:
    def test_addon_outside_every_group(self) -> None:
        groups = parse_group_definitions({"g1": ["A", "B"]})
        assert find_unhandled(["A", "B", "C"], groups) == ["C"]

    def test_result_is_sorted(self) -> None:
        groups = parse_group_definitions({"g1": ["b"]})
        assert find_unhandled(["zeta", "b", "alpha", "mid"], groups) == ["alpha", "mid", "zeta"]

    def test_every_addon_covered(self) -> None:
        groups = parse_group_definitions({"g1": ["A"], "g2": ["B", "C"]})
        assert find_unhandled(["A", "B", "C"], groups) == []

    def test_group_names_outside_catalog_are_ignored(self) -> None:
        groups = parse_group_definitions({"g1": ["A", "retired"]})
        assert find_unhandled(["A"], groups) == []

    @pytest.mark.parametrize(
        "catalog,groups",
        [
            (["A"], {"g": ["A"]}),
            (["A", "B"], {"g": ["A"]}),
            (["A", "B"], {"g": ["B"], "h": ["A"]}),
            ([], {"g": ["A"]}),
            (["A", "B", "C", "D"], {"g": ["A", "C"]}),
        ],
    )
    def test_empty_iff_every_addon_in_some_group(self, catalog: list[str], groups: dict) -> None:
        definitions = parse_group_definitions(groups)
        covered = {ref.name for refs in definitions.values() for ref in refs}
        unhandled = find_unhandled(catalog, definitions)
        assert (unhandled == []) == all(name in covered for name in catalog)
        assert set(unhandled) == set(catalog) - covered


# =============================================================================
# GroupResolver
# =============================================================================


@pytest.fixture
def catalog(addons_dir) -> Catalog:
    addons_dir("metallb", "0.12.0-1")
    addons_dir("metallb", "0.12.0-2")
    addons_dir("thanos", "0.3.20-1")
    addons_dir("cert-manager", "0.10.1-1")
    return Catalog(LocalRepository("local", addons_dir.root))


class TestGroupResolver:
    def test_resolve_uses_most_current_revision(self, catalog: Catalog) -> None:
        resolver = GroupResolver(catalog, parse_group_definitions({"g": ["metallb", "thanos"]}))
        addons = resolver.resolve("g")
        assert [(a.name, a.revision) for a in addons] == [("metallb", "0.12.0-2"), ("thanos", "0.3.20-1")]

    def test_resolve_pinned_revision(self, catalog: Catalog) -> None:
        resolver = GroupResolver(catalog, parse_group_definitions({"g": [{"name": "metallb", "revision": "0.12.0-1"}]}))
        assert resolver.resolve("g")[0].revision == "0.12.0-1"

    def test_resolve_returns_copies(self, catalog: Catalog) -> None:
        resolver = GroupResolver(catalog, parse_group_definitions({"g": ["metallb"]}))
        addon = resolver.resolve("g")[0]
        addon.override_values("speaker: {}")
        assert catalog.get("metallb")[0].chart.values is None
        assert resolver.resolve("g")[0].chart.values is None

    def test_unknown_group(self, catalog: Catalog) -> None:
        resolver = GroupResolver(catalog, parse_group_definitions({"g": ["metallb"]}))
        with pytest.raises(ConfigurationError, match="unknown test group"):
            resolver.resolve("missing")

    def test_unknown_addon(self, catalog: Catalog) -> None:
        resolver = GroupResolver(catalog, parse_group_definitions({"g": ["istio"]}))
        with pytest.raises(ConfigurationError, match="not found in catalog"):
            resolver.resolve("g")

    def test_unknown_revision(self, catalog: Catalog) -> None:
        resolver = GroupResolver(catalog, parse_group_definitions({"g": [{"name": "thanos", "revision": "9.9.9-1"}]}))
        with pytest.raises(ConfigurationError, match="revision not found"):
            resolver.resolve("g")

    def test_resolve_all(self, catalog: Catalog) -> None:
        resolver = GroupResolver(catalog, parse_group_definitions({"b": ["thanos"], "a": ["metallb"]}))
        assert list(resolver.resolve_all()) == ["a", "b"]

    def test_check_completeness_passes(self, catalog: Catalog) -> None:
        resolver = GroupResolver(catalog, parse_group_definitions({"g": ["metallb", "thanos", "cert-manager"]}))
        resolver.check_completeness()

    def test_check_completeness_names_unhandled(self, catalog: Catalog) -> None:
        resolver = GroupResolver(catalog, parse_group_definitions({"g": ["metallb"]}))
        with pytest.raises(CompletenessViolation) as exc_info:
            resolver.check_completeness()
        assert exc_info.value.unhandled == ["cert-manager", "thanos"]
        assert "not handled as part of a testing group" in str(exc_info.value)

    def test_check_completeness_against_one_repository(self, catalog: Catalog, tmp_path: Path) -> None:
        other = tmp_path / "other"
        (other / "kommander").mkdir(parents=True)
        (other / "kommander" / "kommander.yaml").write_text(
            "kind: Addon\nmetadata:\n  name: kommander\nspec:\n  chartReference:\n    chart: kommander\n"
        )
        resolver = GroupResolver(catalog, parse_group_definitions({"g": ["metallb"]}))
        with pytest.raises(CompletenessViolation) as exc_info:
            resolver.check_completeness(LocalRepository("other", other))
        assert exc_info.value.unhandled == ["kommander"]
