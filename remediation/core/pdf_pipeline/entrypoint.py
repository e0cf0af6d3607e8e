"""
Remediation pipeline orchestrator.

Drives one job through PreCheck -> Splitting -> Remediating -> Merging ->
TitleGeneration -> PostCheck -> Done, with Failed reachable from every
non-terminal state. During Remediating the chunks fan out to a bounded
pool of concurrent tasks and are joined before the merge gate.

Dependencies: All task modules, configs, boundary adapters
System role: Pipeline orchestration (coordinates only)
"""

import asyncio
import logging
import threading
import time

from remediation.boundary.aws.s3_client import S3BlobStore
from remediation.boundary.blob_store import BlobStore
from remediation.boundary.genai.generative_client import GeminiGenerativeService, GenerativeService
from remediation.boundary.pdf.document_service import DocumentService, PikePdfDocumentService
from remediation.core.exceptions import (
    ErrorKind,
    InvalidInputKeyError,
    JobCancelledError,
    RemediationException,
    RemediationFailedError,
)
from remediation.observability.log_utils import log_exception_with_context, log_with_context

from .configs import RemediationPipelineSettings, get_pipeline_settings
from .models import (
    CheckPhase,
    ChunkArtifact,
    ChunkStage,
    ChunkState,
    ComplianceReport,
    JobContext,
    JobEvent,
    JobOutcome,
    JobState,
    RemediationResult,
    can_transition,
)
from .retry import call_with_retry
from .tasks import (
    AccessibilityCheckTask,
    AltTextTask,
    AutotagTask,
    MergeTask,
    SplitTask,
    TitleTask,
)

logger = logging.getLogger(__name__)


class _JobProgress:
    """Current state and history of one running job."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        self.state = JobState.PRE_CHECK
        self.history: list[JobState] = [JobState.PRE_CHECK]

    def enter(self, target: JobState) -> None:
        if not can_transition(self.state, target):
            raise RuntimeError(f"Illegal transition {self.state.value} -> {target.value}")
        self.state = target
        self.history.append(target)


class RemediationPipeline:
    """Orchestrate PDF remediation: check -> split -> tag+enrich -> merge -> title -> check."""

    def __init__(
        self,
        settings: RemediationPipelineSettings | None = None,
        blob_store: BlobStore | None = None,
        document_service: DocumentService | None = None,
        generative_service: GenerativeService | None = None,
    ) -> None:
        """
        Initialize pipeline with configuration and collaborators.

        Args:
            settings: Pipeline settings (uses environment defaults if None)
            blob_store: Storage backend (S3 bucket from settings if None)
            document_service: Tagging/extraction service (pikepdf if None)
            generative_service: Text generation service (Gemini if None)
        """
        self._settings = settings or get_pipeline_settings()
        self._layout = self._settings.key_layout()
        self._retry_policy = self._settings.retry_policy()

        self._blob_store = blob_store or S3BlobStore(
            bucket=self._settings.bucket,
            region=self._settings.region,
        )
        self._document_service = document_service or PikePdfDocumentService(
            default_language=self._settings.default_language,
        )
        self._generative_service = generative_service or GeminiGenerativeService(
            model_name=self._settings.model_id,
            timeout=self._settings.generation_timeout_seconds,
        )

        self._check_task = AccessibilityCheckTask(self._blob_store, self._retry_policy)
        self._split_task = SplitTask(
            self._blob_store,
            self._layout,
            chunk_size=self._settings.chunk_size,
            retry_policy=self._retry_policy,
        )
        self._autotag_task = AutotagTask(
            self._blob_store, self._layout, self._document_service, self._retry_policy
        )
        self._alt_text_task = AltTextTask(
            self._blob_store,
            self._layout,
            self._document_service,
            self._generative_service,
            self._retry_policy,
        )
        self._merge_task = MergeTask(self._blob_store, self._layout, self._retry_policy)
        self._title_task = TitleTask(
            self._blob_store,
            self._layout,
            self._document_service,
            self._generative_service,
            self._retry_policy,
            context_chars=self._settings.title_context_chars,
        )

        self._cancelled: set[str] = set()
        self._cancel_lock = threading.Lock()

    def cancel(self, job_id: str) -> None:
        """
        Request cancellation of a job.

        Honored at the job's next state transition; chunk tasks already in
        flight run to completion, queued ones are not dispatched.
        """
        with self._cancel_lock:
            self._cancelled.add(job_id)
        logger.info(f"{__name__}:cancel - Cancellation requested", extra={"job_id": job_id})

    def is_cancelled(self, job_id: str) -> bool:
        with self._cancel_lock:
            return job_id in self._cancelled

    def process(self, input_key: str, job_id: str | None = None) -> JobOutcome:
        """
        Run one job synchronously.

        Args:
            input_key: Key of the uploaded document
            job_id: Optional job id (generated if None)

        Returns:
            JobOutcome: Terminal outcome of the job
        """
        return asyncio.run(self.run(JobEvent(input_key=input_key, job_id=job_id)))

    async def run(self, event: JobEvent | dict) -> JobOutcome:
        """
        Run one job through the state machine.

        Job failures are reported in the returned outcome, never raised.

        Args:
            event: Job event or its dict form ({"inputKey", "jobId"?})

        Returns:
            JobOutcome: Terminal outcome, also persisted under the outcome key
                when the input key could be parsed
        """
        if not isinstance(event, JobEvent):
            event = JobEvent.model_validate(event)

        start_time = time.perf_counter()
        progress = _JobProgress(event.job_id)

        try:
            context = JobContext.from_input_key(event.input_key, event.job_id, self._layout)
        except InvalidInputKeyError as e:
            logger.error(f"{__name__}:run - Invalid input key: {e}", extra={"job_id": event.job_id})
            progress.enter(JobState.FAILED)
            return JobOutcome(
                job_id=event.job_id,
                input_key=event.input_key,
                state=JobState.FAILED,
                failed_stage=JobState.PRE_CHECK,
                error_kind=e.kind,
                error_message=e.message,
                state_history=progress.history,
                processing_time_ms=(time.perf_counter() - start_time) * 1000,
            )

        log_with_context(
            logger,
            logging.INFO,
            f"{__name__}:run - Job started",
            job_id=context.job_id,
            input_key=context.input_key,
            folder_path=context.folder_path,
        )

        outcome = JobOutcome(
            job_id=context.job_id,
            input_key=context.input_key,
            state=JobState.PRE_CHECK,
        )
        try:
            outcome.pre_check_report = await self._check(
                context, context.input_key, CheckPhase.BEFORE, outcome.warnings
            )

            self._advance(progress, JobState.SPLITTING)
            manifest = await asyncio.to_thread(self._split_task.split, context)
            context = context.with_manifest(manifest)

            self._advance(progress, JobState.REMEDIATING)
            outcome.chunk_results = await self._remediate(context)
            failed_chunks = [result.chunk_index for result in outcome.chunk_results if result.is_failure]
            if failed_chunks:
                raise RemediationFailedError(
                    f"Chunk remediation failed for chunks {failed_chunks}",
                    chunk_indices=failed_chunks,
                )

            self._advance(progress, JobState.MERGING)
            await asyncio.to_thread(self._merge_task.merge, context)

            self._advance(progress, JobState.TITLE_GENERATION)
            final_key, warnings = await asyncio.to_thread(self._title_task.run, context)
            outcome.final_key = final_key
            outcome.warnings.extend(warnings)

            self._advance(progress, JobState.POST_CHECK)
            outcome.post_check_report = await self._check(
                context, final_key, CheckPhase.AFTER, outcome.warnings
            )

            self._advance(progress, JobState.DONE)
        except RemediationException as e:
            outcome.failed_stage = progress.state
            outcome.error_kind = e.kind
            outcome.error_message = e.message
            if isinstance(e, RemediationFailedError):
                outcome.failed_chunks = e.chunk_indices
            progress.enter(JobState.FAILED)
            log_with_context(
                logger,
                logging.ERROR,
                f"{__name__}:run - Job failed in {outcome.failed_stage.value}: {e}",
                job_id=context.job_id,
                error_kind=e.kind.value,
            )
        except Exception as e:  # pylint: disable=broad-except
            outcome.failed_stage = progress.state
            outcome.error_kind = ErrorKind.SERVICE_ERROR
            outcome.error_message = f"{type(e).__name__}: {e}"
            progress.enter(JobState.FAILED)
            log_exception_with_context(
                logger,
                f"{__name__}:run - Unexpected error in {outcome.failed_stage.value}",
                e,
                job_id=context.job_id,
            )
        finally:
            with self._cancel_lock:
                self._cancelled.discard(context.job_id)

        outcome.state = progress.state
        outcome.state_history = progress.history
        outcome.processing_time_ms = (time.perf_counter() - start_time) * 1000
        await self._persist_outcome(context, outcome)

        log_with_context(
            logger,
            logging.INFO,
            f"{__name__}:run - Job finished in state {outcome.state.value}",
            job_id=context.job_id,
            final_key=outcome.final_key,
            compliant=outcome.compliant,
            processing_time_ms=round(outcome.processing_time_ms, 1),
        )
        return outcome

    def _advance(self, progress: _JobProgress, target: JobState) -> None:
        """Move to the next state; cancellation is observed here."""
        if self.is_cancelled(progress.job_id):
            raise JobCancelledError(progress.job_id)
        progress.enter(target)
        logger.debug(f"{__name__}:_advance - {progress.job_id} -> {target.value}")

    async def _check(
        self,
        context: JobContext,
        document_key: str,
        phase: CheckPhase,
        warnings: list[str],
    ) -> ComplianceReport:
        """Run one check and persist its report; a failed write becomes a warning."""
        report = await asyncio.to_thread(self._check_task.check, context, document_key, phase)
        report_key = self._layout.report_key(context.folder_path, context.base_name, phase)
        try:
            await asyncio.to_thread(
                call_with_retry,
                self._blob_store.put,
                report_key,
                report.to_json_bytes(),
                policy=self._retry_policy,
                operation=f"report.{phase.value}.write",
            )
        except RemediationException as e:
            log_exception_with_context(
                logger,
                f"{__name__}:_check - {phase.value} report not persisted",
                e,
                job_id=context.job_id,
                report_key=report_key,
            )
            warnings.append(f"{e.kind.value}: {phase.value} report not persisted: {e.message}")
        return report

    async def _remediate(self, context: JobContext) -> list[RemediationResult]:
        """
        Fan out one task per chunk and join them all.

        At most max_concurrency tasks run at once. After the first failure
        (or a cancellation request) queued chunks are skipped, while tasks
        already running finish and keep their result.
        """
        manifest = context.require_manifest()
        semaphore = asyncio.Semaphore(self._settings.max_concurrency)
        halted = asyncio.Event()

        async def run_chunk(chunk_index: int) -> RemediationResult:
            async with semaphore:
                if halted.is_set():
                    return RemediationResult.skipped(chunk_index, "Job already failed")
                if self.is_cancelled(context.job_id):
                    return RemediationResult.skipped(chunk_index, "Job cancelled")
                result = await self._run_chunk_task(context, chunk_index)
                if result.is_failure:
                    halted.set()
                return result

        results = await asyncio.gather(*(run_chunk(chunk.chunk_index) for chunk in manifest.chunks))

        succeeded = sum(1 for result in results if result.ok)
        logger.info(
            f"{__name__}:_remediate - {succeeded}/{manifest.total_chunks} chunks remediated",
            extra={"job_id": context.job_id},
        )
        return list(results)

    async def _run_chunk_task(self, context: JobContext, chunk_index: int) -> RemediationResult:
        """Run both worker stages for one chunk; every failure becomes a result."""
        descriptor = context.require_manifest().chunk(chunk_index)
        artifact = ChunkArtifact(
            chunk_index=chunk_index,
            chunk_key=descriptor.chunk_key,
            autotag_key=self._layout.autotag_key(context.folder_path, context.base_name, chunk_index),
            enriched_key=self._layout.enriched_key(context.folder_path, context.base_name, chunk_index),
        )
        tracker = {"artifact": artifact}

        def stage() -> ChunkStage:
            if tracker["artifact"].state is ChunkState.SPLIT:
                return ChunkStage.AUTOTAG
            return ChunkStage.ALT_TEXT

        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._remediate_chunk, context, tracker),
                timeout=self._settings.chunk_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(
                f"{__name__}:_run_chunk_task - Chunk {chunk_index} timed out",
                extra={"job_id": context.job_id, "stage": stage().value},
            )
            return RemediationResult.failed(
                chunk_index,
                stage(),
                ErrorKind.TRANSIENT_SERVICE_ERROR,
                f"Chunk task exceeded {self._settings.chunk_timeout_seconds}s",
            )
        except RemediationException as e:
            logger.error(
                f"{__name__}:_run_chunk_task - Chunk {chunk_index} failed in {stage().value}: {e}",
                extra={"job_id": context.job_id},
            )
            return RemediationResult.failed(
                chunk_index,
                stage(),
                e.kind,
                e.message,
                attempts=e.details.get("attempts", 1),
            )
        except Exception as e:  # pylint: disable=broad-except
            log_exception_with_context(
                logger,
                f"{__name__}:_run_chunk_task - Unexpected error in chunk {chunk_index}",
                e,
                job_id=context.job_id,
                stage=stage().value,
            )
            return RemediationResult.failed(chunk_index, stage(), ErrorKind.SERVICE_ERROR, str(e))

    def _remediate_chunk(self, context: JobContext, tracker: dict) -> RemediationResult:
        """Blocking body of a chunk task: autotag, then enrich."""
        artifact: ChunkArtifact = tracker["artifact"]
        self._autotag_task.run(context, artifact.chunk_index)
        tracker["artifact"] = artifact = artifact.advance(ChunkState.AUTOTAGGED)

        output_key, attempts = self._alt_text_task.run(context, artifact.chunk_index)
        tracker["artifact"] = artifact = artifact.advance(ChunkState.ENRICHED)
        return RemediationResult.succeeded(artifact.chunk_index, output_key, attempts)

    async def _persist_outcome(self, context: JobContext, outcome: JobOutcome) -> None:
        outcome_key = self._layout.outcome_key(context.folder_path, context.base_name)
        try:
            await asyncio.to_thread(
                call_with_retry,
                self._blob_store.put,
                outcome_key,
                outcome.to_json_bytes(),
                policy=self._retry_policy,
                operation="outcome.write",
            )
        except RemediationException as e:
            log_exception_with_context(
                logger,
                f"{__name__}:_persist_outcome - Outcome not persisted",
                e,
                job_id=context.job_id,
                outcome_key=outcome_key,
            )
            outcome.warnings.append(f"{e.kind.value}: outcome not persisted: {e.message}")


if __name__ == "__main__":
    import sys

    pipeline = RemediationPipeline()
    result = pipeline.process(sys.argv[1] if len(sys.argv) > 1 else "pdf/doc.pdf")
    print(result.model_dump_json(by_alias=True, indent=2))
