"""Batch processing of chart images with bounded concurrency."""

import csv
import io
import json
import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from chart_scanner.config import BatchConfig
from chart_scanner.errors import BatchTooLargeError, is_recoverable
from chart_scanner.models.batch import BatchOCRError, BatchOCRJob, BatchStatus, QueueStatus
from chart_scanner.models.chart import ScanResult

logger = logging.getLogger(__name__)

Processor = Callable[[Any], Any]
ProgressHandler = Callable[[float], None]


class BatchScheduler:
    """Run a processor over many images with error isolation.

    Each job gets its own pool of ``max_concurrent`` worker threads. The
    calling thread coordinates: it dispatches images, drains completions,
    and is the only writer of a job's results, errors and progress.
    """

    # Supported image extensions
    IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".webp", ".tif", ".tiff"}

    def __init__(self, config: BatchConfig | None = None):
        """
        Initialize batch scheduler.

        Args:
            config: Concurrency and batch size limits.
        """
        self._config = config or BatchConfig()
        self._lock = threading.Lock()
        self._active_jobs: list[BatchOCRJob] = []
        self._completed_jobs: list[BatchOCRJob] = []

    @property
    def active_jobs(self) -> list[BatchOCRJob]:
        """Snapshot of running jobs, highest priority first."""
        with self._lock:
            return list(self._active_jobs)

    @property
    def completed_jobs(self) -> list[BatchOCRJob]:
        """Snapshot of finished, failed and cancelled jobs."""
        with self._lock:
            return list(self._completed_jobs)

    def process_batch(
        self,
        images: Sequence[Any],
        processor: Processor,
        progress_handler: ProgressHandler | None = None,
    ) -> BatchOCRJob:
        """
        Process images concurrently, isolating errors per image.

        Args:
            images: Images (arrays or paths) handed to the processor one by one.
            processor: Callable turning one image into a result; may raise.
            progress_handler: Called with completed/total after every image.

        Returns:
            The finished job. Results are ordered by image index.

        Raises:
            BatchTooLargeError: If there are more images than max_batch_size.
            Exception: Whatever progress_handler raises; the job is then
                marked failed and moved to the completed list.
        """
        images = list(images)
        if len(images) > self._config.max_batch_size:
            raise BatchTooLargeError(len(images), self._config.max_batch_size)

        job = BatchOCRJob(images=images)
        with self._lock:
            self._active_jobs.append(job)
            job.status = BatchStatus.PROCESSING

        logger.info("Batch %s: processing %d image(s)", job.id, len(images))
        try:
            indexed_results = self._run(job, processor, progress_handler)
        except Exception:
            # The job must never stay active once its coordinator is gone
            with self._lock:
                job.end_time = datetime.now(timezone.utc)
                if job.status is not BatchStatus.CANCELLED:
                    job.status = BatchStatus.FAILED
                    self._move_to_completed(job)
            logger.warning("Batch %s aborted after %d image(s)", job.id, len(job.results))
            raise

        with self._lock:
            indexed_results.sort(key=lambda item: item[0])
            job.result_indices = [index for index, _ in indexed_results]
            job.results = [result for _, result in indexed_results]
            job.end_time = datetime.now(timezone.utc)

            if job.status is not BatchStatus.CANCELLED:
                job.status = BatchStatus.FAILED if job.errors else BatchStatus.COMPLETED
                self._move_to_completed(job)

        logger.info(
            "Batch %s %s: %d succeeded, %d failed",
            job.id,
            job.status.value,
            len(job.results),
            len(job.errors),
        )
        return job

    def _run(
        self,
        job: BatchOCRJob,
        processor: Processor,
        progress_handler: ProgressHandler | None,
    ) -> list[tuple[int, Any]]:
        images = job.images
        total = len(images)
        max_concurrent = self._config.max_concurrent
        indexed_results: list[tuple[int, Any]] = []

        if total == 0:
            self._report_progress(job, 1.0, progress_handler)
            return indexed_results

        completed = 0
        next_index = 0
        pending: dict[Future, int] = {}

        with ThreadPoolExecutor(
            max_workers=max_concurrent, thread_name_prefix="chart-batch"
        ) as executor:

            def dispatch() -> None:
                nonlocal next_index
                while next_index < total and len(pending) < max_concurrent:
                    if job.status is BatchStatus.CANCELLED:
                        return
                    logger.debug("Batch %s: dispatching image %d", job.id, next_index)
                    pending[executor.submit(processor, images[next_index])] = next_index
                    next_index += 1

            dispatch()
            while pending:
                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in sorted(done, key=pending.__getitem__):
                    index = pending.pop(future)
                    try:
                        result = future.result()
                    except Exception as e:
                        error = BatchOCRError(
                            image_index=index,
                            message=str(e) or type(e).__name__,
                            recoverable=is_recoverable(e),
                        )
                        job.errors.append(error)
                        logger.warning(
                            "Batch %s: image %d failed (recoverable=%s): %s",
                            job.id,
                            index,
                            error.recoverable,
                            error.message,
                        )
                    else:
                        job.results.append(result)
                        indexed_results.append((index, result))

                    completed += 1
                    if job.status is not BatchStatus.CANCELLED:
                        self._report_progress(job, completed / total, progress_handler)
                    dispatch()

        return indexed_results

    def _report_progress(
        self, job: BatchOCRJob, progress: float, progress_handler: ProgressHandler | None
    ) -> None:
        job.progress = progress
        if progress_handler is not None:
            progress_handler(progress)

    def cancel_job(self, job_id: str) -> bool:
        """
        Cancel a queued or running job.

        No new images are dispatched; images already being processed run
        to completion.

        Returns:
            True if the job was active and is now cancelled.
        """
        with self._lock:
            job = self._find(self._active_jobs, job_id)
            if job is None or job.status not in (BatchStatus.QUEUED, BatchStatus.PROCESSING):
                return False
            job.status = BatchStatus.CANCELLED
            job.end_time = datetime.now(timezone.utc)
            self._move_to_completed(job)

        logger.info("Batch %s cancelled", job_id)
        return True

    def prioritize_job(self, job_id: str) -> bool:
        """Move an active job to the front of the queue."""
        with self._lock:
            job = self._find(self._active_jobs, job_id)
            if job is None:
                return False
            self._active_jobs.remove(job)
            self._active_jobs.insert(0, job)
        return True

    def track_progress(self, job_id: str) -> float:
        """Return the progress of a job, or 0.0 if it is unknown."""
        job = self.get_job(job_id)
        return job.progress if job is not None else 0.0

    def get_job(self, job_id: str) -> BatchOCRJob | None:
        """Look a job up among active and completed jobs."""
        with self._lock:
            return self._find(self._active_jobs, job_id) or self._find(
                self._completed_jobs, job_id
            )

    def get_queue_status(self) -> QueueStatus:
        """Point-in-time counts of the scheduler's jobs."""
        with self._lock:
            return QueueStatus(
                active_count=len(self._active_jobs),
                queued_count=sum(
                    1 for job in self._active_jobs if job.status is BatchStatus.QUEUED
                ),
                processing_count=sum(
                    1 for job in self._active_jobs if job.status is BatchStatus.PROCESSING
                ),
                completed_count=len(self._completed_jobs),
            )

    def clear_completed(self) -> None:
        """Forget all finished jobs."""
        with self._lock:
            self._completed_jobs.clear()

    def _find(self, jobs: list[BatchOCRJob], job_id: str) -> BatchOCRJob | None:
        return next((job for job in jobs if job.id == job_id), None)

    def _move_to_completed(self, job: BatchOCRJob) -> None:
        if job in self._active_jobs:
            self._active_jobs.remove(job)
        self._completed_jobs.append(job)

    def collect_images(self, inputs: list[Path]) -> list[Path]:
        """
        Collect image paths from files and directories.

        Args:
            inputs: List of file paths or directories.

        Returns:
            Sorted list of image file paths.
        """
        images: set[Path] = set()

        for path in inputs:
            if path.is_dir():
                images.update(
                    p
                    for p in path.iterdir()
                    if p.is_file() and p.suffix.lower() in self.IMAGE_EXTENSIONS
                )
            elif path.is_file() and path.suffix.lower() in self.IMAGE_EXTENSIONS:
                images.add(path)

        # Sort for deterministic order
        return sorted(images)

    def to_json(self, job: BatchOCRJob) -> str:
        """
        Format a batch job as JSON.

        Args:
            job: Finished job.

        Returns:
            JSON string with metadata, results, and errors.
        """
        output = {
            "metadata": {
                "job_id": job.id,
                "status": job.status.value,
                "total": job.total_pages,
                "succeeded": len(job.results),
                "failed": len(job.errors),
                "total_time_ms": round(job.elapsed_ms, 2),
            },
            "results": [
                {"image_index": index, **self._dump_result(result)}
                for index, result in zip(job.result_indices, job.results)
            ],
            "errors": [asdict(error) for error in job.errors],
        }
        return json.dumps(output, indent=2, ensure_ascii=False)

    def to_csv(self, job: BatchOCRJob) -> str:
        """
        Format a batch job as CSV, one row per image.

        Args:
            job: Finished job.

        Returns:
            CSV string with all results and errors.
        """
        output = io.StringIO()
        fieldnames = [
            "image_index",
            "layout_type",
            "sections",
            "chords",
            "quality_score",
            "confidence",
            "error",
            "recoverable",
        ]
        writer = csv.DictWriter(output, fieldnames=fieldnames)
        writer.writeheader()

        rows = []
        for index, result in zip(job.result_indices, job.results):
            row = {k: "" for k in fieldnames}
            row["image_index"] = index
            if isinstance(result, ScanResult):
                row["layout_type"] = result.layout.layout_type.value
                row["sections"] = len(result.layout.sections)
                row["chords"] = len(result.layout.chord_placements)
                row["quality_score"] = round(result.quality.overall_score, 3)
                row["confidence"] = round(result.confidence, 3)
            rows.append(row)

        for error in job.errors:
            row = {k: "" for k in fieldnames}
            row["image_index"] = error.image_index
            row["error"] = error.message
            row["recoverable"] = error.recoverable
            rows.append(row)

        writer.writerows(sorted(rows, key=lambda r: r["image_index"]))
        return output.getvalue()

    def _dump_result(self, result: Any) -> dict:
        if isinstance(result, BaseModel):
            return result.model_dump(mode="json")
        return {"result": result}
