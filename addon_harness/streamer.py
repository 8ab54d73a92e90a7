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

"""Background streaming of cluster events into the test output."""

from __future__ import annotations

import subprocess
import threading
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path

from rich.console import Console

from addon_harness import console, logger
from addon_harness.constants import STREAM_RESTART_WAIT_SECONDS
from addon_harness.utils import command_env


class LogStreamer:
    """Tails cluster events on a background thread until asked to stop.

    Read failures are logged and the stream is reopened; they never reach the
    caller. ``request_stop()`` followed by ``join()`` guarantees that nothing
    is written to the sink after ``join()`` returns.

    Example:
        >>> with LogStreamer(cluster.kubeconfig):
        ...     harness.run(ctx, cluster)
    """

    def __init__(
        self,
        kubeconfig: Path | None = None,
        sink: Console | None = None,
        source: Callable[[], Iterable[str]] | None = None,
        restart_wait: float = STREAM_RESTART_WAIT_SECONDS,
    ) -> None:
        self._kubeconfig = kubeconfig
        self._sink = sink
        self._source = source or self._watch_events
        self._restart_wait = restart_wait
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._proc: subprocess.Popen | None = None
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> LogStreamer:
        """Spawn the streaming thread.

        The sink defaults to the console of the calling thread, captured now.

        Raises:
            RuntimeError: If the streamer was already started.
        """
        if self._thread is not None:
            raise RuntimeError("log streamer already started")
        sink = self._sink or console.current()
        self._thread = threading.Thread(target=self._run, args=(sink,), name="log-streamer", daemon=True)
        self._thread.start()
        return self

    def request_stop(self) -> None:
        """Signal the thread to stop and unblock any pending read."""
        self._stop.set()
        with self._lock:
            if self._proc is not None:
                self._proc.terminate()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the thread to drain and exit.

        Returns:
            True if the thread has exited.
        """
        if self._thread is None:
            return True
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("log streamer still running after %ss", timeout)
            return False
        return True

    def stop(self, timeout: float | None = None) -> bool:
        self.request_stop()
        return self.join(timeout)

    def __enter__(self) -> LogStreamer:
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def _run(self, sink: Console) -> None:
        while not self._stop.is_set():
            try:
                for line in self._source():
                    if self._stop.is_set():
                        break
                    sink.print(line.rstrip("\n"), markup=False, highlight=False)
            except Exception as err:
                logger.warning("reading cluster events failed: %s", err)
            self._stop.wait(self._restart_wait)

    def _watch_events(self) -> Iterator[str]:
        proc = subprocess.Popen(
            ["kubectl", "get", "events", "--all-namespaces", "--watch"],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            env=command_env(self._kubeconfig),
        )
        with self._lock:
            self._proc = proc
            if self._stop.is_set():
                proc.terminate()
        try:
            yield from proc.stdout
        finally:
            with self._lock:
                self._proc = None
            proc.terminate()
            proc.stdout.close()
            returncode = proc.wait()
            if returncode not in (0, -15) and not self._stop.is_set():
                logger.warning("event watch exited with status %d, restarting", returncode)
