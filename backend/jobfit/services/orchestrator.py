from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from functools import partial
from pathlib import Path
from typing import AsyncIterator, Optional

from jobfit.core import AnalysisRecord, CVScoringPromptData, JobRequirement, ScoreReport, Settings, Stage
from jobfit.errors import DocumentError, OrchestratorError, Reason
from jobfit.logging_config import get_logger
from jobfit.messages import message
from jobfit.models import RawDocument
from jobfit.services.catalog import JobCatalog
from jobfit.services.fallback import demo_score
from jobfit.services.parse import parse_document
from jobfit.services.progress import ProgressChannel
from jobfit.services.scorer import Scorer

logger = get_logger(__name__)

UPLOAD_PERCENT = 10
TICK_STEP = 3
# (elapsed seconds upper bound, stage, message key, percent cap)
TICK_BUCKETS = (
    (10.0, Stage.EXTRACTING, "processing_file", 30),
    (20.0, Stage.ANALYZING, "ai_analysis", 70),
    (float("inf"), Stage.ANALYZING, "building_report", 85),
)
AWAITING_PERCENT = 95


def tick_bucket(elapsed: float):
    for upper, stage, key, cap in TICK_BUCKETS:
        if elapsed < upper:
            return stage, key, cap
    return TICK_BUCKETS[-1][1:]


class ScoringOrchestrator:
    """
    Runs one scoring request end to end and reports progress on a channel.

    Single-shot per channel: once the channel has seen Done or Failed it cannot
    be reused, a retry needs a fresh channel.
    """

    def __init__(
        self,
        scorer: Scorer,
        catalog: JobCatalog,
        upload_dir: Path,
        timeout: float = 120.0,
        fallback_delay: float = 3.0,
        tick_interval: float = 1.0,
        locale: str = "en",
        ocr_lang: str = "eng",
    ):
        self.scorer = scorer
        self.catalog = catalog
        self.upload_dir = upload_dir
        self.timeout = timeout
        self.fallback_delay = fallback_delay
        self.tick_interval = tick_interval
        self.locale = locale
        self.ocr_lang = ocr_lang

    @classmethod
    def from_settings(cls, settings: Settings, scorer: Scorer, catalog: JobCatalog) -> "ScoringOrchestrator":
        return cls(
            scorer=scorer,
            catalog=catalog,
            upload_dir=settings.upload_dir,
            timeout=settings.ai_timeout_seconds,
            fallback_delay=settings.fallback_delay_seconds,
            tick_interval=settings.progress_interval_seconds,
            locale=settings.locale,
            ocr_lang=settings.ocr_lang,
        )

    def _msg(self, key: str) -> str:
        return message(key, self.locale)

    async def _tick(self, channel: ProgressChannel) -> None:
        # time-based estimate only; says nothing about real AI progress
        while True:
            await asyncio.sleep(self.tick_interval)
            if channel.closed:
                return
            stage, key, cap = tick_bucket(channel.elapsed())
            percent = min(channel.percent + TICK_STEP, cap)
            channel.emit(stage, percent, self._msg(key))

    @asynccontextmanager
    async def _ticking(self, channel: ProgressChannel) -> AsyncIterator[None]:
        task = asyncio.create_task(self._tick(channel))
        try:
            yield
        finally:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def evaluate(self, raw: Optional[RawDocument], job_id: int, channel: ProgressChannel) -> ScoreReport:
        """Full request: look up the job, parse the upload if any, then score."""
        if channel.closed:
            raise RuntimeError("progress channel already finished; start a new request")

        requirement = self.catalog.get(job_id)
        channel.emit(Stage.UPLOADING, UPLOAD_PERCENT, self._msg("uploading"))

        if raw is None:
            return await self.score(None, job_id, requirement, has_document=False, channel=channel)

        async with self._ticking(channel):
            channel.emit(Stage.EXTRACTING, channel.percent, self._msg("processing_file"))
            try:
                # backends are blocking; keep them off the loop so the ticker keeps running
                record = await asyncio.to_thread(
                    partial(parse_document, raw, self.upload_dir, locale=self.locale, ocr_lang=self.ocr_lang)
                )
            except DocumentError as e:
                logger.warning("Document rejected (%s): %s", e.reason.value, e.message)
                channel.fail(e.user_message)
                raise
            if record.is_sparse:
                channel.emit(Stage.EXTRACTING, channel.percent, self._msg("sparse_text"))
            return await self._score_with_ai(record, job_id, requirement, channel)

    async def score(
        self,
        record: Optional[AnalysisRecord],
        job_id: int,
        requirement: JobRequirement,
        has_document: bool,
        channel: ProgressChannel,
    ) -> ScoreReport:
        if not channel.events:
            channel.emit(Stage.UPLOADING, UPLOAD_PERCENT, self._msg("uploading"))

        if not has_document or record is None:
            channel.emit(Stage.FINALIZING, 100, self._msg("demo_scoring"))
            report = demo_score(job_id, requirement)
            channel.done(self._msg("done"))
            logger.info("Demo score for job %s: %d", job_id, report.score)
            return report

        async with self._ticking(channel):
            return await self._score_with_ai(record, job_id, requirement, channel)

    async def _score_with_ai(
        self,
        record: AnalysisRecord,
        job_id: int,
        requirement: JobRequirement,
        channel: ProgressChannel,
    ) -> ScoreReport:
        data = CVScoringPromptData(cv_analysis=record, job=requirement)
        ai_task = asyncio.create_task(self.scorer.score(data))

        try:
            done, _ = await asyncio.wait({ai_task}, timeout=self.timeout)
        finally:
            # abandon the pending call on timeout or when this request is cancelled
            if not ai_task.done():
                ai_task.cancel()

        if not done:
            logger.error("AI scorer exceeded %.0fs deadline for job %s", self.timeout, job_id)
            channel.fail(self._msg("timeout"))
            raise OrchestratorError(
                f"AI scorer did not answer within {self.timeout:.0f}s",
                Reason.TIMEOUT,
                self._msg("timeout"),
                details={"job_id": job_id},
            )

        try:
            report = ai_task.result()
        except Exception as e:
            logger.warning("AI scorer failed for job %s (%s), falling back to demo scorer: %s", job_id, Reason.SCORER_UNAVAILABLE.value, e)
            channel.fail(self._msg("scorer_failed"))
            await asyncio.sleep(self.fallback_delay)
            return demo_score(job_id, requirement).model_copy(update={"degraded": True})

        channel.emit(Stage.AWAITING_SCORE, AWAITING_PERCENT, self._msg("awaiting_score"))
        report = report.model_copy(update={"score": max(0, min(100, int(report.score)))})
        channel.emit(Stage.FINALIZING, 100, self._msg("finalizing"))
        channel.done(self._msg("done"))
        logger.info("AI score for job %s: %d (source=%s)", job_id, report.score, record.source)
        return report
