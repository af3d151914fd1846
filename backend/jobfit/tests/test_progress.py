import asyncio

import pytest

from jobfit.core import Stage
from jobfit.services.progress import ProgressChannel
from jobfit.services.report import render_progress


def test_new_channel_is_empty():
    channel = ProgressChannel()
    assert channel.latest is None
    assert channel.percent == 0
    assert not channel.closed


def test_percent_never_goes_down():
    channel = ProgressChannel()
    channel.emit(Stage.UPLOADING, 10, "Uploading")
    channel.emit(Stage.ANALYZING, 60, "AI analysis")
    event = channel.emit(Stage.ANALYZING, 40, "AI analysis")

    assert event.percent == 60
    assert [e.percent for e in channel.events] == [10, 60, 60]


def test_percent_is_bounded():
    channel = ProgressChannel()
    assert channel.emit(Stage.ANALYZING, 140, "x").percent == 100


def test_fail_keeps_current_percent_and_closes():
    channel = ProgressChannel()
    channel.emit(Stage.EXTRACTING, 25, "Processing file")
    event = channel.fail("Could not read the file")

    assert event.stage == Stage.FAILED
    assert event.percent == 25
    assert channel.closed


def test_emit_after_done_raises():
    channel = ProgressChannel()
    channel.done()
    with pytest.raises(RuntimeError):
        channel.emit(Stage.ANALYZING, 50, "late tick")


def test_events_returns_a_copy():
    channel = ProgressChannel()
    channel.emit(Stage.UPLOADING, 10, "Uploading")
    channel.events.clear()
    assert len(channel.events) == 1


@pytest.mark.anyio
async def test_subscribe_replays_then_follows():
    channel = ProgressChannel()
    channel.emit(Stage.UPLOADING, 10, "Uploading")

    async def produce():
        await asyncio.sleep(0.01)
        channel.emit(Stage.ANALYZING, 50, "AI analysis")
        await asyncio.sleep(0.01)
        channel.done("Done")

    producer = asyncio.create_task(produce())
    seen = [event.stage async for event in channel.subscribe()]
    await producer

    assert seen == [Stage.UPLOADING, Stage.ANALYZING, Stage.DONE]


@pytest.mark.anyio
async def test_subscribe_on_closed_channel_replays_history():
    channel = ProgressChannel()
    channel.emit(Stage.UPLOADING, 10, "Uploading")
    channel.fail("boom")

    seen = [event async for event in channel.subscribe()]
    assert [e.stage for e in seen] == [Stage.UPLOADING, Stage.FAILED]


def test_render_progress_bar():
    channel = ProgressChannel()
    line = render_progress(channel.emit(Stage.ANALYZING, 50, "AI analysis"), width=10)
    assert line.startswith("[#####-----]")
    assert "50%" in line
    assert "AI analysis" in line
