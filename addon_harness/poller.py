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

"""Bounded polling of eventual cluster state."""

from __future__ import annotations

import time
from collections.abc import Callable

from tenacity import RetryCallState, RetryError, Retrying, retry_if_result, stop_after_delay

from addon_harness.errors import PollTimeoutError


def _wait_within(interval: float, timeout: float) -> Callable[[RetryCallState], float]:
    """Fixed wait, shortened so the last attempt lands on the deadline."""

    def _wait(retry_state: RetryCallState) -> float:
        remaining = timeout - retry_state.seconds_since_start
        return max(0.0, min(interval, remaining))

    return _wait


def poll_until(
    predicate: Callable[[], bool],
    interval: float,
    timeout: float,
    description: str = "condition",
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Evaluate ``predicate`` until it returns True or ``timeout`` elapses.

    A False result means "not yet" and is retried after ``interval`` seconds.
    An exception means the state cannot be observed; it is not retried and
    propagates unchanged.

    Args:
        predicate: Zero-argument check of the cluster state.
        interval: Seconds to sleep between evaluations.
        timeout: Seconds after the first evaluation at which to give up.
        description: What is being waited for, used in the timeout message.
        sleep: Sleep function, replaceable in tests.

    Returns:
        The number of evaluations it took.

    Raises:
        PollTimeoutError: If the predicate never returned True in time.
    """
    attempts = 0

    def _attempt() -> bool:
        nonlocal attempts
        attempts += 1
        return bool(predicate())

    retryer = Retrying(
        retry=retry_if_result(lambda ready: not ready),
        stop=stop_after_delay(timeout),
        wait=_wait_within(interval, timeout),
        sleep=sleep,
    )
    try:
        retryer(_attempt)
    except RetryError as err:
        raise PollTimeoutError(
            f"timed out waiting for {description}",
            timeout=timeout,
            attempts=attempts,
            details={"timeout": f"{timeout:g}s", "attempts": attempts},
        ) from err
    return attempts
