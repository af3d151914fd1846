import asyncio
import time

import pytest

from conftest import FakeScorer, make_docx, make_pdf, make_png, sample_report
from jobfit.core import ScoreReport, Stage
from jobfit.errors import DocumentError, OrchestratorError, Reason, ScorerError
from jobfit.models import RawDocument
from jobfit.services import extract
from jobfit.services import orchestrator as orchestrator_module
from jobfit.services.analyzer import analyze
from jobfit.services.orchestrator import tick_bucket
from jobfit.services.progress import ProgressChannel


def _percents_never_drop(channel: ProgressChannel) -> bool:
    percents = [e.percent for e in channel.events if e.stage != Stage.FAILED]
    return all(a <= b for a, b in zip(percents, percents[1:]))


@pytest.mark.parametrize(
    "elapsed, stage, key, cap",
    [
        (0.0, Stage.EXTRACTING, "processing_file", 30),
        (9.9, Stage.EXTRACTING, "processing_file", 30),
        (10.0, Stage.ANALYZING, "ai_analysis", 70),
        (19.5, Stage.ANALYZING, "ai_analysis", 70),
        (20.0, Stage.ANALYZING, "building_report", 85),
        (500.0, Stage.ANALYZING, "building_report", 85),
    ],
)
def test_tick_bucket(elapsed, stage, key, cap):
    assert tick_bucket(elapsed) == (stage, key, cap)


@pytest.mark.anyio
async def test_pdf_for_job_42_scores_through_ai(make_orchestrator, fake_scorer):
    orch = make_orchestrator(fake_scorer)
    channel = ProgressChannel()
    raw = RawDocument(data=make_pdf(), declared_format="application/pdf", filename="cv.pdf")

    report = await orch.evaluate(raw, 42, channel)

    assert 0 <= report.score <= 100
    assert report.scorer == "ai"
    assert not report.degraded
    assert len(fake_scorer.calls) == 1
    sent = fake_scorer.calls[0]
    assert sent.cv_analysis.extracted_text
    assert sent.job.title == "Backend Python Developer"

    stages = [e.stage for e in channel.events]
    assert stages[0] == Stage.UPLOADING
    assert stages[-3:] == [Stage.AWAITING_SCORE, Stage.FINALIZING, Stage.DONE]
    assert channel.events[0].percent == 10
    assert channel.latest.percent == 100
    assert _percents_never_drop(channel)


@pytest.mark.anyio
async def test_no_document_never_calls_ai(make_orchestrator, fake_scorer, catalog):
    orch = make_orchestrator(fake_scorer)
    channel = ProgressChannel()

    report = await orch.score(None, 7, catalog.get(7), has_document=False, channel=channel)

    assert fake_scorer.calls == []
    assert report.scorer == "demo"
    assert 0 <= report.score <= 100
    assert [e.stage for e in channel.events] == [Stage.UPLOADING, Stage.FINALIZING, Stage.DONE]


@pytest.mark.anyio
async def test_evaluate_without_file_uses_demo(make_orchestrator, fake_scorer):
    channel = ProgressChannel()
    report = await make_orchestrator(fake_scorer).evaluate(None, 7, channel)

    assert fake_scorer.calls == []
    assert report.scorer == "demo"
    assert channel.latest.stage == Stage.DONE


@pytest.mark.anyio
async def test_timeout_surfaces_and_skips_fallback(make_orchestrator, catalog, monkeypatch):
    def no_fallback(*args, **kwargs):
        raise AssertionError("fallback must not run on timeout")

    monkeypatch.setattr(orchestrator_module, "demo_score", no_fallback)
    slow = FakeScorer(delay=10)
    orch = make_orchestrator(slow, timeout=0.05)
    channel = ProgressChannel()
    record = analyze("Python developer with 5 years experience with Django.", "PDF")

    started = time.monotonic()
    with pytest.raises(OrchestratorError) as exc_info:
        await orch.score(record, 42, catalog.get(42), has_document=True, channel=channel)

    assert time.monotonic() - started < 5
    assert exc_info.value.reason == Reason.TIMEOUT
    assert channel.latest.stage == Stage.FAILED
    assert channel.closed


@pytest.mark.anyio
async def test_malformed_response_falls_back_after_delay(make_orchestrator, catalog):
    broken = FakeScorer(error=ScorerError("Response is missing 'score'"))
    orch = make_orchestrator(broken, fallback_delay=0.1)
    channel = ProgressChannel()
    record = analyze("Python developer. Bachelor degree.", "DOCX")

    started = time.monotonic()
    report = await orch.score(record, 42, catalog.get(42), has_document=True, channel=channel)

    assert time.monotonic() - started >= 0.1
    assert len(broken.calls) == 1
    assert report.degraded
    assert report.scorer == "demo"
    assert 0 <= report.score <= 100
    assert channel.latest.stage == Stage.FAILED
    assert [e.stage for e in channel.events].count(Stage.FAILED) == 1


@pytest.mark.anyio
async def test_network_error_also_falls_back(make_orchestrator, catalog):
    orch = make_orchestrator(FakeScorer(error=ConnectionError("reset by peer")))
    channel = ProgressChannel()
    report = await orch.score(analyze("Python", "PDF"), 7, catalog.get(7), has_document=True, channel=channel)

    assert report.degraded
    assert channel.latest.stage == Stage.FAILED


@pytest.mark.anyio
async def test_out_of_range_ai_score_is_clamped(make_orchestrator, catalog):
    wild = ScoreReport.model_construct(**{**sample_report().model_dump(), "score": 250})
    orch = make_orchestrator(FakeScorer(report=wild))

    report = await orch.score(analyze("Python", "PDF"), 42, catalog.get(42), has_document=True, channel=ProgressChannel())

    assert report.score == 100


@pytest.mark.anyio
async def test_progress_ticks_while_ai_runs(make_orchestrator, catalog):
    orch = make_orchestrator(FakeScorer(delay=0.3), tick_interval=0.02)
    channel = ProgressChannel()

    await orch.score(analyze("Python", "PDF"), 42, catalog.get(42), has_document=True, channel=channel)

    ticks = [e for e in channel.events if e.stage == Stage.EXTRACTING]
    assert len(ticks) >= 3
    # first bucket never goes past its cap
    assert max(e.percent for e in ticks) <= 30
    assert _percents_never_drop(channel)


@pytest.mark.anyio
async def test_ticker_keeps_running_during_extraction(make_orchestrator, fake_scorer, monkeypatch):
    real_parse = orchestrator_module.parse_document

    def slow_parse(*args, **kwargs):
        time.sleep(0.2)
        return real_parse(*args, **kwargs)

    monkeypatch.setattr(orchestrator_module, "parse_document", slow_parse)
    orch = make_orchestrator(fake_scorer, tick_interval=0.02)
    channel = ProgressChannel()
    raw = RawDocument(data=make_pdf(), declared_format="application/pdf", filename="cv.pdf")

    await orch.evaluate(raw, 42, channel)

    before_ai = [e for e in channel.events if e.stage == Stage.EXTRACTING]
    assert len(before_ai) >= 4


@pytest.mark.anyio
async def test_corrupt_docx_fails_without_score(make_orchestrator, fake_scorer, upload_dir):
    channel = ProgressChannel()
    raw = RawDocument(data=b"not a zip archive", declared_format="", filename="cv.docx")

    with pytest.raises(DocumentError) as exc_info:
        await make_orchestrator(fake_scorer).evaluate(raw, 42, channel)

    assert exc_info.value.reason == Reason.CORRUPT_OR_UNSUPPORTED
    assert fake_scorer.calls == []
    assert channel.latest.stage == Stage.FAILED
    assert list(upload_dir.iterdir()) == []


@pytest.mark.anyio
async def test_docx_end_to_end(make_orchestrator, fake_scorer):
    raw = RawDocument(data=make_docx(), declared_format="", filename="cv.docx")
    report = await make_orchestrator(fake_scorer).evaluate(raw, 101, ProgressChannel())

    assert report.score == 78
    assert fake_scorer.calls[0].cv_analysis.source == "DOCX"


@pytest.mark.anyio
async def test_finished_channel_cannot_be_reused(make_orchestrator, fake_scorer):
    orch = make_orchestrator(fake_scorer)
    channel = ProgressChannel()
    await orch.evaluate(None, 7, channel)

    with pytest.raises(RuntimeError):
        await orch.evaluate(None, 7, channel)


@pytest.mark.anyio
async def test_ai_task_is_cancelled_on_timeout(make_orchestrator, catalog):
    cancelled = asyncio.Event()

    class Hanging:
        async def score(self, data):
            try:
                await asyncio.sleep(60)
            except asyncio.CancelledError:
                cancelled.set()
                raise

    orch = make_orchestrator(Hanging(), timeout=0.05)
    with pytest.raises(OrchestratorError):
        await orch.score(analyze("Python", "PDF"), 42, catalog.get(42), has_document=True, channel=ProgressChannel())

    await asyncio.wait_for(cancelled.wait(), timeout=1)


@pytest.mark.anyio
async def test_cancelling_the_request_cancels_the_ai_call(make_orchestrator, catalog):
    state = {"started": asyncio.Event(), "cancelled": False, "finished": False}

    class Slow:
        async def score(self, data):
            state["started"].set()
            try:
                await asyncio.sleep(0.3)
            except asyncio.CancelledError:
                state["cancelled"] = True
                raise
            state["finished"] = True
            return sample_report()

    orch = make_orchestrator(Slow(), timeout=5.0)
    request = asyncio.create_task(
        orch.score(analyze("Python", "PDF"), 42, catalog.get(42), has_document=True, channel=ProgressChannel())
    )
    await asyncio.wait_for(state["started"].wait(), timeout=1)
    request.cancel()
    with pytest.raises(asyncio.CancelledError):
        await request

    await asyncio.sleep(0.5)
    assert state["cancelled"]
    assert not state["finished"]


@pytest.mark.anyio
async def test_sparse_ocr_text_is_reported_on_the_channel(make_orchestrator, fake_scorer, monkeypatch):
    monkeypatch.setattr(extract.pytesseract, "image_to_string", lambda img, lang="eng": "CV")
    channel = ProgressChannel()
    raw = RawDocument(data=make_png(), declared_format="image/png", filename="cv.png")

    await make_orchestrator(fake_scorer).evaluate(raw, 42, channel)

    assert any("Very little text" in e.message for e in channel.events)
    assert fake_scorer.calls[0].cv_analysis.is_sparse
