"""
Background extraction: a durable job queue and an asyncio worker pool.

record_turn commits the turn and its job together, then hands the job id to
the pool without waiting. Jobs left pending or running by a previous process
are picked up again on start(), so every turn is extracted at least once.
Store writes are keyed by deterministic memory ids, which makes a repeated
run harmless. Job failures are logged and recorded on the job row; they are
never retried automatically and never reach the caller.
"""

import asyncio
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from tiered_memory.core.database import Database, utcnow
from tiered_memory.memory.extractor import MemoryExtractor
from tiered_memory.memory.store import TieredMemoryStore
from tiered_memory.models.memory import ChatTurn, ExtractionJob
from tiered_memory.models.schemas import ConversationTurn, JobStatus

logger = logging.getLogger(__name__)


class ExtractionJobQueue:
    """
    Extraction jobs persisted in the extraction_jobs table, keyed by chat id.
    """

    def __init__(self, database: Database):
        self.database = database

    @staticmethod
    def enqueue(db: Session, job_id: str, user_id: str) -> ExtractionJob:
        """
        Add a pending job inside the caller's transaction.

        Args:
            db: Open session of the turn-record transaction
            job_id: Chat id of the recorded turn
            user_id: Owning user

        Returns:
            ExtractionJob: The new job row
        """
        job = ExtractionJob(job_id=job_id, user_id=user_id, status=JobStatus.PENDING.value, attempts=0)
        db.add(job)
        return job

    def claim(self, job_id: str) -> Optional[ConversationTurn]:
        """
        Mark a job running and load its turn.

        Returns:
            Optional[ConversationTurn]: The turn to extract, or None when the
            job is unknown or already done
        """
        with self.database.transaction() as db:
            job = db.get(ExtractionJob, job_id)
            if job is None or job.status == JobStatus.DONE.value:
                return None

            turn = db.scalar(select(ChatTurn).where(ChatTurn.chat_id == job_id))
            if turn is None:
                job.status = JobStatus.FAILED.value
                job.last_error = "Source turn not found"
                job.updated_at = utcnow()
                return None

            job.status = JobStatus.RUNNING.value
            job.attempts += 1
            job.updated_at = utcnow()

            return ConversationTurn(
                user_input=turn.user_input,
                ai_output=turn.ai_output,
                user_id=turn.user_id,
                chat_id=turn.chat_id,
                model=turn.model,
                context=turn.context,
                metadata=turn.metadata_ or {}
            )

    def complete(self, job_id: str) -> None:
        self._set_status(job_id, JobStatus.DONE)

    def fail(self, job_id: str, error: str) -> None:
        self._set_status(job_id, JobStatus.FAILED, error)

    def _set_status(self, job_id: str, status: JobStatus, error: Optional[str] = None) -> None:
        with self.database.transaction() as db:
            job = db.get(ExtractionJob, job_id)
            if job is None:
                return
            job.status = status.value
            job.last_error = error
            job.updated_at = utcnow()

    def get_status(self, job_id: str) -> Optional[JobStatus]:
        with self.database.session() as db:
            job = db.get(ExtractionJob, job_id)
            return JobStatus(job.status) if job is not None else None

    def unfinished_job_ids(self) -> List[str]:
        """Pending and interrupted (running) jobs, oldest first."""
        with self.database.session() as db:
            return list(db.scalars(
                select(ExtractionJob.job_id)
                .where(ExtractionJob.status.in_([JobStatus.PENDING.value, JobStatus.RUNNING.value]))
                .order_by(ExtractionJob.created_at)
            ))


class ExtractionWorkerPool:
    """
    Asyncio workers consuming extraction jobs.

    There is no per-user serialization: jobs for the same user may run
    concurrently.
    """

    def __init__(
        self,
        jobs: ExtractionJobQueue,
        extractor: MemoryExtractor,
        store: TieredMemoryStore,
        workers: int = 2
    ):
        """
        Initialize the pool without starting it.

        Args:
            jobs: Durable job queue
            extractor: Memory extractor
            store: Tiered memory store
            workers: Number of concurrent workers
        """
        self.jobs = jobs
        self.extractor = extractor
        self.store = store
        self.workers = max(1, workers)
        self._queue: Optional[asyncio.Queue] = None
        self._tasks: List[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        """
        Start the workers and re-enqueue unfinished jobs.
        """
        if self.is_running:
            return

        self._queue = asyncio.Queue()
        recovered = self.jobs.unfinished_job_ids()
        for job_id in recovered:
            self._queue.put_nowait(job_id)
        if recovered:
            logger.info(f"Recovered {len(recovered)} unfinished extraction jobs")

        self._tasks = [
            asyncio.create_task(self._worker(index), name=f"extraction-worker-{index}")
            for index in range(self.workers)
        ]
        logger.info(f"Started {self.workers} extraction workers")

    def submit(self, job_id: str) -> None:
        """
        Hand a committed job to the workers without waiting for it.

        When the pool is not running the job stays pending in the database
        and is picked up by the next start().
        """
        if self._queue is None or not self.is_running:
            logger.warning(f"Worker pool not running; job {job_id} stays pending")
            return
        self._queue.put_nowait(job_id)

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        """Cancel the workers. Unprocessed jobs stay pending for the next start."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self._queue = None
        logger.info("Extraction workers stopped")

    async def _worker(self, index: int) -> None:
        while True:
            job_id = await self._queue.get()
            try:
                await self.process(job_id)
            finally:
                self._queue.task_done()

    async def process(self, job_id: str) -> None:
        """
        Run one extraction job end to end.

        Any failure is terminal for the job: it is logged and stored on the
        job row, and nothing is raised.

        Database calls run in a worker thread so the event loop keeps serving
        requests while a job writes.
        """
        try:
            turn = await asyncio.to_thread(self.jobs.claim, job_id)
            if turn is None:
                logger.debug(f"Skipping job {job_id}: already done or unknown")
                return

            result = await self.extractor.extract_memories(turn)
            if result.memories:
                await asyncio.to_thread(
                    self.store.write_candidates, turn.user_id, turn.chat_id, result.memories
                )
            await asyncio.to_thread(self.jobs.complete, job_id)

        except Exception as e:
            logger.error(f"Memory processing failed for job {job_id}: {e}", exc_info=True)
            try:
                await asyncio.to_thread(self.jobs.fail, job_id, str(e))
            except Exception as status_error:
                logger.error(f"Could not mark job {job_id} failed: {status_error}")
