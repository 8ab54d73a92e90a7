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

"""Exception types raised by the addon test harness.

Exception Hierarchy:
    HarnessError (base)
    ├── ConfigurationError - malformed group definitions or catalog sources
    ├── ProvisioningError - cluster creation failed
    ├── CommandError - an external command exited non-zero
    ├── JobFailure - a job's assertion or operational step failed
    │   └── PollTimeoutError - a polled condition was never observed
    ├── FatalError - the run cannot continue (e.g. cluster unreachable)
    ├── CleanupFailure - cleanup left residue behind
    └── CompletenessViolation - catalog addons missing from every group
"""

from __future__ import annotations

from typing import Any


class HarnessError(Exception):
    """Base exception for all harness errors.

    Attributes:
        message: Human-readable error description.
        details: Additional context such as job, phase, or addon names.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(HarnessError):
    """Group definitions or catalog sources are unusable. Fatal at startup."""


class ProvisioningError(HarnessError):
    """A test cluster could not be created."""


class CommandError(HarnessError):
    """An external command exited with a non-zero status.

    Attributes:
        command: The command line that failed.
        exit_code: Process exit status.
    """

    def __init__(self, command: str, exit_code: int, stderr: str = "") -> None:
        details: dict[str, Any] = {"exit_code": exit_code}
        if stderr:
            details["stderr"] = stderr.strip()
        super().__init__(f"command failed: {command}", details)
        self.command = command
        self.exit_code = exit_code


class JobFailure(HarnessError):
    """A job observed something other than what it expected."""

    def with_context(self, **context: Any) -> JobFailure:
        """Add localizing context (job, phase, addon) without overwriting it."""
        for key, value in context.items():
            self.details.setdefault(key, value)
        return self


class PollTimeoutError(JobFailure):
    """A polled condition was never observed before the deadline.

    Attributes:
        timeout: The deadline in seconds.
        attempts: Number of times the condition was evaluated.
    """

    def __init__(self, message: str, timeout: float, attempts: int, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details)
        self.timeout = timeout
        self.attempts = attempts


class FatalError(HarnessError):
    """The run cannot continue; only cleanup is still attempted."""


class CleanupFailure(HarnessError):
    """Cleanup jobs failed; earlier phase outcomes are unaffected."""


class CompletenessViolation(HarnessError):
    """Catalog addons exist that no test group covers.

    Attributes:
        unhandled: Sorted names of the uncovered addons.
    """

    def __init__(self, unhandled: list[str]) -> None:
        super().__init__(
            f"the following addons are not handled as part of a testing group: {unhandled}",
            {"count": len(unhandled)},
        )
        self.unhandled = unhandled
