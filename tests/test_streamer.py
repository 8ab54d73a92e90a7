"""Tests for the background log streamer."""

from __future__ import annotations

import io
import threading
from collections.abc import Iterator

import pytest
from rich.console import Console

from addon_harness import console
from addon_harness.streamer import LogStreamer


def _sink() -> tuple[Console, io.StringIO]:
    buf = io.StringIO()
    return Console(file=buf, width=200), buf


class BlockingSource:
    """Yields some lines, then blocks until released."""

    def __init__(self, lines: list[str]) -> None:
        self.lines = lines
        self.emitted = threading.Event()
        self.release = threading.Event()

    def __call__(self) -> Iterator[str]:
        yield from self.lines
        self.emitted.set()
        self.release.wait(5)


class TestLogStreamer:
    def test_writes_lines_until_stopped(self) -> None:
        sink, buf = _sink()
        source = BlockingSource(["Normal Scheduled pod/a\n", "Normal Pulled pod/a\n"])
        streamer = LogStreamer(sink=sink, source=source, restart_wait=0.01).start()

        assert source.emitted.wait(5)
        streamer.request_stop()
        source.release.set()

        assert streamer.join(5)
        assert not streamer.running
        assert "Normal Scheduled pod/a" in buf.getvalue()
        assert "Normal Pulled pod/a" in buf.getvalue()

    def test_nothing_written_after_join(self) -> None:
        sink, buf = _sink()

        def endless() -> Iterator[str]:
            while True:
                yield "event\n"

        streamer = LogStreamer(sink=sink, source=endless, restart_wait=0.01).start()
        streamer.stop(5)
        size = len(buf.getvalue())

        threading.Event().wait(0.05)
        assert len(buf.getvalue()) == size

    def test_read_errors_are_logged_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        sink, buf = _sink()
        failed = threading.Event()

        def broken() -> Iterator[str]:
            failed.set()
            raise OSError("stream closed")
            yield  # pragma: no cover

        streamer = LogStreamer(sink=sink, source=broken, restart_wait=0.01)
        with caplog.at_level("WARNING", logger="addon_harness"):
            streamer.start()
            assert failed.wait(5)
            assert streamer.stop(5)

        assert "stream closed" in caplog.text

    def test_stream_reopens_after_it_ends(self) -> None:
        sink, _ = _sink()
        opened = []
        reopened = threading.Event()

        def short() -> Iterator[str]:
            opened.append(1)
            if len(opened) >= 2:
                reopened.set()
            yield "line\n"

        streamer = LogStreamer(sink=sink, source=short, restart_wait=0.01).start()
        assert reopened.wait(5)
        assert streamer.stop(5)

    def test_context_manager_stops_on_exit(self) -> None:
        sink, _ = _sink()
        with LogStreamer(sink=sink, source=lambda: iter(()), restart_wait=0.01) as streamer:
            assert streamer.running
        assert not streamer.running

    def test_cannot_start_twice(self) -> None:
        sink, _ = _sink()
        streamer = LogStreamer(sink=sink, source=lambda: iter(()), restart_wait=0.01).start()
        try:
            with pytest.raises(RuntimeError, match="already started"):
                streamer.start()
        finally:
            streamer.stop(5)

    def test_defaults_to_callers_buffered_console(self) -> None:
        source = BlockingSource(["buffered event\n"])
        with console.buffered() as buf:
            streamer = LogStreamer(source=source, restart_wait=0.01).start()
            assert source.emitted.wait(5)
            streamer.request_stop()
            source.release.set()
            assert streamer.join(5)
        assert "buffered event" in buf.getvalue()
