"""End-to-end addon group tests on real kind clusters.

Requires docker, kind, kubectl, and helm, plus network access to the remote
addon repository. Enable with ``ADDON_TEST_E2E=1``; the catalog location and
timing come from the usual ADDON_TEST_* variables.
"""

from __future__ import annotations

import os

import pytest

from addon_harness.runner import RunContext, run_group
from addon_harness.utils import require_command

pytestmark = [
    pytest.mark.e2e,
    pytest.mark.skipif(os.environ.get("ADDON_TEST_E2E") != "1", reason="set ADDON_TEST_E2E=1 to run"),
]


@pytest.fixture(scope="module")
def ctx():
    for cmd in ("kind", "kubectl", "helm", "docker"):
        require_command(cmd)
    run_ctx = RunContext.from_config()
    yield run_ctx
    run_ctx.catalog.close()


def test_every_local_addon_is_in_a_group(ctx: RunContext) -> None:
    ctx.resolver.check_completeness(ctx.local)


def test_kommander_group(ctx: RunContext) -> None:
    run_group(ctx, "kommander").raise_for_failure()
