"""
Parallel Batch Import

Implements:
- One task per demo file, fanned out over a thread or process pool
- Per-file error isolation: every file yields either a Match or an
  ImportFailure, a failing file never aborts the others
- Progress tracking and result aggregation

Each task builds its own engine via parse_match(), so nothing is shared
between workers.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from tacboard.core.config import BatchConfig, TacboardConfig
from tacboard.core.models import Match

logger = logging.getLogger(__name__)

MAX_WORKERS = os.cpu_count() or 8


@dataclass
class ImportFailure:
    """A file that could not be turned into a Match."""

    filename: str
    error_message: str

    def to_dict(self) -> dict[str, str]:
        return {"filename": self.filename, "errorMessage": self.error_message}


@dataclass
class FileImportResult:
    """Outcome of importing one file."""

    filename: str
    duration_seconds: float
    match: Match | None = None
    failure: ImportFailure | None = None

    @property
    def success(self) -> bool:
        return self.match is not None


@dataclass
class BatchProgress:
    """Progress tracking for a batch import."""

    total_tasks: int
    completed_tasks: int = 0
    failed_tasks: int = 0
    current_task: str = ""
    start_time: float = field(default_factory=time.time)

    @property
    def progress_percent(self) -> float:
        if self.total_tasks == 0:
            return 100.0
        return round((self.completed_tasks / self.total_tasks) * 100, 1)

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.start_time


@dataclass
class BatchImportResult:
    """Result of a batch import, in input order."""

    results: list[FileImportResult] = field(default_factory=list)
    total_duration_seconds: float = 0.0

    @property
    def matches(self) -> list[Match]:
        return [r.match for r in self.results if r.match is not None]

    @property
    def failures(self) -> list[ImportFailure]:
        return [r.failure for r in self.results if r.failure is not None]

    @property
    def successful(self) -> int:
        return len(self.matches)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def success_rate(self) -> float:
        if not self.results:
            return 0.0
        return round((self.successful / len(self.results)) * 100, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": len(self.results),
            "successful": self.successful,
            "failed": self.failed,
            "success_rate": self.success_rate,
            "total_duration_seconds": round(self.total_duration_seconds, 2),
            "failures": [f.to_dict() for f in self.failures],
        }


def import_file(path: Path, config: TacboardConfig | None = None) -> FileImportResult:
    """
    Worker function: parse one file, never raise.
    This may run in a separate process.
    """
    # Import here to keep the worker picklable and the module light
    from tacboard.pipeline.orchestrator import MatchOrchestrator

    path = Path(path)
    start_time = time.time()
    try:
        match = MatchOrchestrator(config).parse_file(path)
        return FileImportResult(
            filename=path.name, duration_seconds=time.time() - start_time, match=match
        )
    except Exception as e:
        logger.error(f"Failed to import {path.name}: {e}")
        return FileImportResult(
            filename=path.name,
            duration_seconds=time.time() - start_time,
            failure=ImportFailure(filename=path.name, error_message=str(e)),
        )


class BatchImporter:
    """
    Imports many demo-event files concurrently.

    Usage:
        importer = BatchImporter(workers=4)
        batch = importer.import_files([Path("a.json"), Path("b.json")])
        for failure in batch.failures:
            print(failure.filename, failure.error_message)
    """

    def __init__(
        self,
        workers: int = BatchConfig.workers,
        use_processes: bool = BatchConfig.use_processes,
        config: TacboardConfig | None = None,
        progress_callback: Callable[[BatchProgress], None] | None = None,
    ):
        self.workers = max(1, min(workers, MAX_WORKERS))
        self.use_processes = use_processes
        self.config = config
        self.progress_callback = progress_callback

        logger.info(f"BatchImporter initialized with {self.workers} workers")

    @classmethod
    def from_config(
        cls,
        config: TacboardConfig,
        progress_callback: Callable[[BatchProgress], None] | None = None,
    ) -> BatchImporter:
        return cls(
            workers=config.batch.workers,
            use_processes=config.batch.use_processes,
            config=config,
            progress_callback=progress_callback,
        )

    def import_files(self, paths: Sequence[Path]) -> BatchImportResult:
        if not paths:
            return BatchImportResult()

        paths = [Path(p) for p in paths]
        progress = BatchProgress(total_tasks=len(paths))
        start_time = time.time()
        by_index: dict[int, FileImportResult] = {}

        ExecutorClass = ProcessPoolExecutor if self.use_processes else ThreadPoolExecutor

        logger.info(f"Starting batch import of {len(paths)} files with {self.workers} workers")

        with ExecutorClass(max_workers=self.workers) as executor:
            future_to_index = {
                executor.submit(import_file, path, self.config): i for i, path in enumerate(paths)
            }

            for future in as_completed(future_to_index):
                index = future_to_index[future]
                filename = paths[index].name
                progress.current_task = filename

                try:
                    result = future.result()
                except Exception as e:
                    # Worker crashed outright (e.g. a broken process pool)
                    logger.error(f"Task for {filename} failed: {e}")
                    result = FileImportResult(
                        filename=filename,
                        duration_seconds=0.0,
                        failure=ImportFailure(filename=filename, error_message=str(e)),
                    )

                by_index[index] = result
                progress.completed_tasks += 1
                if not result.success:
                    progress.failed_tasks += 1

                if self.progress_callback:
                    self.progress_callback(progress)

        batch = BatchImportResult(
            results=[by_index[i] for i in range(len(paths))],
            total_duration_seconds=time.time() - start_time,
        )
        logger.info(
            f"Batch import complete: {batch.successful}/{len(paths)} successful "
            f"in {batch.total_duration_seconds:.1f}s"
        )
        return batch

    def import_directory(self, directory: Path, recursive: bool = True) -> BatchImportResult:
        pattern = "**/*.json" if recursive else "*.json"
        paths = sorted(Path(directory).glob(pattern))
        logger.info(f"Found {len(paths)} event files in {directory}")
        return self.import_files(paths)
