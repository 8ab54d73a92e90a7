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

"""Jobs, phases, and the lifecycle harness that runs them against a cluster.

A harness is loaded with phases and run once. Non-cleanup phases run in load
order until a required phase fails or a FatalError is raised; cleanup phases
always run afterwards, whatever happened before.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from rich.panel import Panel

from addon_harness import console, logger
from addon_harness.errors import CleanupFailure, FatalError, HarnessError, JobFailure

if TYPE_CHECKING:
    from addon_harness.cluster import ClusterHandle

JobFunc = Callable[[Any, "ClusterHandle"], None]


class Policy(str, Enum):
    """How a phase reacts to a failing job."""

    FAIL_FAST = "fail-fast"
    RUN_ALL = "run-all"


# ============================================================================
# Jobs
# ============================================================================

@dataclass(frozen=True)
class Job:
    """A named step run against a live cluster.

    ``func`` receives the test context and the cluster handle. It signals
    failure by raising; any exception other than FatalError is turned into a
    JobFailure carrying the job, phase, and addon names.

    Attributes:
        name: Job name, unique within its phase.
        func: The step itself.
        addon: Name of the addon the job is scoped to, if any.
    """

    name: str
    func: JobFunc
    addon: str | None = None

    def run(self, ctx: Any, cluster: ClusterHandle, phase: str) -> JobFailure | None:
        """Run the job and return its failure, or None on success.

        Raises:
            FatalError: Propagated unchanged so the harness can abort.
        """
        context = {"job": self.name, "phase": phase}
        if self.addon:
            context["addon"] = self.addon
        try:
            self.func(ctx, cluster)
        except FatalError as err:
            for key, value in context.items():
                err.details.setdefault(key, value)
            raise
        except JobFailure as err:
            return err.with_context(**context)
        except Exception as err:
            failure = JobFailure(str(err) or type(err).__name__, context)
            failure.__cause__ = err
            return failure
        return None


@dataclass(frozen=True)
class JobResult:
    job: str
    error: JobFailure | None = None

    @property
    def passed(self) -> bool:
        return self.error is None


# ============================================================================
# Phases
# ============================================================================

@dataclass
class PhaseResult:
    """Outcome of one phase.

    Attributes:
        name: Phase name.
        jobs: Results of the jobs that ran, in run order.
        error: The first job failure, or None.
        required: Whether the phase counts towards the overall outcome.
        cleanup: Whether this was a cleanup phase.
    """

    name: str
    jobs: list[JobResult] = field(default_factory=list)
    error: JobFailure | None = None
    required: bool = True
    cleanup: bool = False

    @property
    def passed(self) -> bool:
        return self.error is None

    @property
    def failures(self) -> list[JobFailure]:
        return [r.error for r in self.jobs if r.error is not None]


@dataclass
class Phase:
    """An ordered set of jobs run under one failure policy.

    Attributes:
        name: Phase name (e.g. ``deploy``).
        jobs: Jobs in run order.
        policy: FAIL_FAST stops at the first failure, RUN_ALL runs every job.
        cleanup: Cleanup phases run last and always run.
        required: Whether a failure fails the overall result.
    """

    name: str
    jobs: list[Job] = field(default_factory=list)
    policy: Policy = Policy.FAIL_FAST
    cleanup: bool = False
    required: bool = True

    def add(self, *jobs: Job) -> Phase:
        self.jobs.extend(jobs)
        return self

    def run(self, ctx: Any, cluster: ClusterHandle) -> PhaseResult:
        """Run the jobs in order according to the phase policy.

        Raises:
            FatalError: If a job reports that the run cannot continue.
        """
        result = PhaseResult(self.name, required=self.required, cleanup=self.cleanup)
        for job in self.jobs:
            error = job.run(ctx, cluster, self.name)
            result.jobs.append(JobResult(job.name, error))
            if error is None:
                console.print(f"[green]  ✓ {job.name}[/green]")
                continue
            console.print(f"[red]  ✗ {job.name}: {error}[/red]")
            logger.error("Job %s failed in phase %s: %s", job.name, self.name, error)
            if result.error is None:
                result.error = error
            if self.policy is Policy.FAIL_FAST:
                break
        return result


# ============================================================================
# Harness
# ============================================================================

@dataclass
class HarnessResult:
    """Aggregated outcome of a harness run.

    Attributes:
        phases: Results of the non-cleanup phases that ran, in order.
        cleanup: Results of the cleanup phases.
        skipped: Names of phases not run because of an earlier failure.
        fatal: The error that aborted the run, if any.
    """

    phases: list[PhaseResult] = field(default_factory=list)
    cleanup: list[PhaseResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    fatal: FatalError | None = None

    @property
    def passed(self) -> bool:
        """True if every required phase passed and nothing was fatal."""
        return self.fatal is None and not self.skipped and all(
            p.passed for p in self.phases if p.required
        )

    @property
    def clean(self) -> bool:
        """True if every cleanup job succeeded."""
        return all(p.passed for p in self.cleanup)

    @property
    def cleanup_errors(self) -> list[JobFailure]:
        return [err for p in self.cleanup for err in p.failures]

    def failure(self) -> HarnessError | None:
        """Return the error that failed the run, ignoring cleanup."""
        if self.fatal is not None:
            return self.fatal
        for phase in self.phases:
            if phase.required and phase.error is not None:
                return phase.error
        return None

    def raise_for_failure(self) -> None:
        """Raise the run's failure, or CleanupFailure if only cleanup failed."""
        failure = self.failure()
        if failure is not None:
            raise failure
        if not self.clean:
            errors = self.cleanup_errors
            raise CleanupFailure(
                f"cleanup failed for {len(errors)} job(s)",
                {"jobs": ", ".join(str(err.details.get("job", "?")) for err in errors)},
            ) from errors[0]


class LifecycleHarness:
    """Runs loaded phases in order and always finishes with cleanup.

    Example:
        >>> harness = LifecycleHarness("logging")
        >>> harness.load(validate, deploy, default, cleanup)
        >>> result = harness.run(ctx, cluster)
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._phases: list[Phase] = []
        self._ran = False

    @property
    def phases(self) -> list[Phase]:
        return list(self._phases)

    def load(self, *phases: Phase) -> LifecycleHarness:
        """Append phases to the run plan.

        Raises:
            RuntimeError: If the harness has already run.
        """
        if self._ran:
            raise RuntimeError("cannot load phases into a harness that already ran")
        self._phases.extend(phases)
        return self

    def run(self, ctx: Any, cluster: ClusterHandle) -> HarnessResult:
        """Execute the loaded phases against ``cluster``.

        Raises:
            RuntimeError: If the harness has already run.
        """
        if self._ran:
            raise RuntimeError("harness already ran")
        self._ran = True

        result = HarnessResult()
        main = [p for p in self._phases if not p.cleanup]
        cleanup = [p for p in self._phases if p.cleanup]
        try:
            for phase in main:
                if result.fatal is not None or result.failure() is not None:
                    logger.info("Skipping phase %s after earlier failure", phase.name)
                    result.skipped.append(phase.name)
                    continue
                try:
                    result.phases.append(self._run_phase(phase, ctx, cluster))
                except FatalError as err:
                    logger.error("Fatal error in phase %s: %s", phase.name, err)
                    console.print(f"[red]❌ Fatal error in phase {phase.name}: {err}[/red]")
                    result.fatal = err
        finally:
            for phase in cleanup:
                try:
                    result.cleanup.append(self._run_phase(phase, ctx, cluster))
                except FatalError as err:
                    logger.error("Cleanup phase %s aborted: %s", phase.name, err)
                    result.cleanup.append(PhaseResult(
                        phase.name,
                        error=JobFailure(err.message, err.details),
                        required=phase.required,
                        cleanup=True,
                    ))
        self._report(result)
        return result

    def _run_phase(self, phase: Phase, ctx: Any, cluster: ClusterHandle) -> PhaseResult:
        title = f"{self.name}: {phase.name}" if self.name else phase.name
        console.print(Panel.fit(f"Phase {title} ({len(phase.jobs)} jobs, {phase.policy.value})", style="bold blue"))
        logger.info("Running phase %s", title)
        phase_result = phase.run(ctx, cluster)
        if phase_result.passed:
            console.print(f"[green]✅ Phase {phase.name} passed[/green]")
        else:
            console.print(f"[red]❌ Phase {phase.name} failed: {phase_result.error}[/red]")
        return phase_result

    def _report(self, result: HarnessResult) -> None:
        for name in result.skipped:
            console.print(f"[yellow]⚠️  Phase {name} skipped[/yellow]")
        if not result.clean:
            console.print(f"[yellow]⚠️  Cleanup left residue: {len(result.cleanup_errors)} job(s) failed[/yellow]")
