"""Tests for pykilla application."""

import signal
from datetime import datetime, timedelta

import pytest
from factories import ListSource, RecordingControl, make_row, make_snapshot

from pykilla.app import (
    ProcessTable,
    PykillaApp,
    StatusBar,
    format_bytes,
    format_cpu,
    format_duration,
    format_started,
    row_cells,
)
from pykilla.bridge import CollectorBridge
from pykilla.config import Config
from pykilla.models import MemoryTotals, ProcessRecord, TableData
from pykilla.pipeline import Appearance, ProcessPipeline

RECORDS = [
    ProcessRecord(pid=101, name="worker", command_line="/opt/worker --a", memory_rss=0, cpu_percent=2.0),
    ProcessRecord(pid=102, name="worker", command_line="/opt/worker --b", memory_rss=0, cpu_percent=1.0),
    ProcessRecord(pid=103, name="editor", command_line="/usr/bin/editor", memory_rss=0, cpu_percent=3.0),
]


def make_app(control=None, snapshots=200):
    bridge = CollectorBridge(lambda: ListSource([make_snapshot(*RECORDS)] * snapshots), poll_rate=0.1)
    return PykillaApp(Config(), bridge=bridge, process_control=control or RecordingControl())


def test_format_bytes():
    assert format_bytes(500) == "500B"
    assert "K" in format_bytes(2048)
    assert "G" in format_bytes(1073741824)


def test_format_cpu():
    assert format_cpu(0.0) == "-"
    assert format_cpu(12.34) == "12.3 %"


def test_format_duration():
    assert format_duration(timedelta(0)) == "0s"
    assert format_duration(timedelta(seconds=59)) == "59s"
    assert format_duration(timedelta(hours=1, minutes=2, seconds=3)) == "1h 2m 3s"
    assert format_duration(timedelta(days=2, minutes=5)) == "2d 5m"


def test_format_started():
    assert format_started(None) == "-"
    assert format_started(datetime(2024, 3, 9, 7, 5)) == "09/03/2024 07:05"


def test_row_cells():
    row = make_row(pid=7, name="sh", memory_bytes=52_000_000, cpu_percent=1.25, cpu_seconds=61)
    assert row_cells(row) == ("sh", "52 MB", "1.2 %", "7", "/usr/bin/sh", "-", "1m 1s")


def test_status_bar_memory_unavailable():
    pipeline = ProcessPipeline(process_control=RecordingControl())
    assert "Mem n/a" in StatusBar.describe(pipeline)


def test_status_bar_shows_modes():
    pipeline = ProcessPipeline(process_control=RecordingControl())
    pipeline.accept(TableData(rows=(make_row(pid=1, name="killa"),), memory=MemoryTotals(50, 100)))
    pipeline.replace_search("killa foo:x")
    pipeline.set_freeze(True)

    text = StatusBar.describe(pipeline)

    assert "(50.0%)" in text
    assert "FROZEN" in text
    assert "unknown column 'foo'" in text


@pytest.mark.asyncio
async def test_app_creation():
    """Test PykillaApp can be instantiated."""
    app = make_app()
    assert app.title == "pykilla"
    assert app.pipeline is not None


@pytest.mark.asyncio
async def test_app_compose():
    """Test PykillaApp composes correctly."""
    app = make_app()
    async with app.run_test() as pilot:
        assert pilot.app.query_one("#status") is not None
        assert pilot.app.query_one("#process-table") is not None
        assert pilot.app.query_one("#search").display is False


@pytest.mark.asyncio
async def test_app_receives_updates():
    """Test that rows from the collector reach the table."""
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause(1.0)
        table = pilot.app.query_one("#process-table")
        assert table.row_count == 3
        assert [row.pid for row in app.pipeline.visible_rows] == [103, 101, 102]


@pytest.mark.asyncio
async def test_typing_filters_without_search_box():
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause(1.0)
        await pilot.press("w", "o", "r")
        assert app.pipeline.search_text == "wor"
        assert pilot.app.query_one("#process-table").row_count == 2

        await pilot.press("backspace")
        assert app.pipeline.search_text == "wo"


@pytest.mark.asyncio
async def test_sort_binding():
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause(1.0)
        await pilot.press("f3")
        assert [row.pid for row in app.pipeline.visible_rows] == [103, 102, 101]


@pytest.mark.asyncio
async def test_stage_and_confirm_signal():
    control = RecordingControl()
    app = make_app(control)
    async with app.run_test() as pilot:
        await pilot.pause(1.0)
        await pilot.press("w", "o", "r", "k", "f5", "ctrl+k")
        assert app.pipeline.staged_signal is signal.SIGTERM

        await pilot.press("enter")
        assert control.sent == [(101, signal.SIGTERM), (102, signal.SIGTERM)]
        assert app.pipeline.frozen


@pytest.mark.asyncio
async def test_escape_cancels_staged_signal():
    control = RecordingControl()
    app = make_app(control)
    async with app.run_test() as pilot:
        await pilot.pause(1.0)
        await pilot.press("w", "o", "r", "k", "f5", "ctrl+x")
        assert app.pipeline.staged_signal is signal.SIGKILL

        await pilot.press("escape")
        assert app.pipeline.staged_signal is None
        await pilot.press("enter")
        assert control.sent == []


@pytest.mark.asyncio
async def test_stage_rejected_without_freeze():
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause(1.0)
        await pilot.press("w", "o", "r", "k", "ctrl+k")
        assert app.pipeline.staged_signal is None


@pytest.mark.asyncio
async def test_toggle_search_box():
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.press("ctrl+f")
        await pilot.pause()
        search = pilot.app.query_one("#search")
        assert search.display is True
        assert search.has_focus

        await pilot.press("e", "d")
        await pilot.pause()
        assert app.pipeline.search_text == "ed"

        await pilot.press("ctrl+f")
        assert search.display is False


@pytest.mark.asyncio
async def test_appearance_toggle():
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.press("ctrl+t")
        assert app.pipeline.appearance is Appearance.LIGHT
        assert app.theme == "textual-light"


@pytest.mark.asyncio
async def test_disconnect_is_shown():
    app = make_app(snapshots=1)
    async with app.run_test() as pilot:
        await pilot.pause(1.0)
        assert app.pipeline.disconnected
        assert pilot.app.query_one(ProcessTable) is not None
        assert "DISCONNECTED" in StatusBar.describe(app.pipeline)


def test_status_bar_shows_typed_brackets_literally():
    pipeline = ProcessPipeline(process_control=RecordingControl())
    pipeline.replace_search("x[/]:y [$accent]:z")

    text = StatusBar.describe(pipeline)

    assert "unknown column 'x[/]'" in text.plain
    assert "unknown column '[$accent]'" in text.plain


@pytest.mark.asyncio
async def test_bracketed_search_token_does_not_crash():
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause(1.0)
        await pilot.press("x", "[", "/", "]", ":", "y")
        await pilot.pause()

        assert app.is_running
        assert app.pipeline.search_text == "x[/]:y"
        assert app.pipeline.visible_rows == []
