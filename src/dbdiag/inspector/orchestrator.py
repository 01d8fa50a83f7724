import logging
import queue
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional
from ..domain.models import Outcome, OutcomeKind, RunReport, Target
from .checker import ConnectionChecker

logger = logging.getLogger(__name__)


class HealthCheckOrchestrator:
    """
    Runs one target synchronously, or fans out every target onto a thread pool.

    Workers never touch shared state: each one puts exactly one Outcome on a
    queue, and the calling thread is the only writer of the report.
    """

    def __init__(
        self,
        key: bytes,
        timeout_seconds: Optional[float] = 10.0,
        max_workers: int = 8,
        checker: Optional[ConnectionChecker] = None,
    ):
        self.max_workers = max_workers
        self.checker = checker or ConnectionChecker(key, timeout_seconds=timeout_seconds)

    def run_one(self, target: Target) -> Outcome:
        return self.checker.check(target)

    def run_all(self, targets: Iterable[Target]) -> RunReport:
        targets = list(targets)
        ids = [t.id for t in targets]
        if len(set(ids)) != len(ids):
            raise ValueError("Target identifiers must be unique")
        if not targets:
            return RunReport()

        logger.info("Starting checks for %d targets", len(targets))
        start_time = time.monotonic()
        results: "queue.Queue[Outcome]" = queue.Queue()
        outcomes = {}

        workers = min(self.max_workers, len(targets))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="dbdiag") as executor:
            for target in targets:
                executor.submit(self._run_unit, target, results)

            # join barrier: one outcome per target, in completion order
            for _ in targets:
                outcome = results.get()
                outcomes[outcome.target_id] = outcome

        report = RunReport(outcomes=outcomes)
        logger.info(
            "Checks completed in %.2fs. Success: %d, Failed: %d",
            time.monotonic() - start_time,
            len(outcomes) - len(report.failures),
            len(report.failures),
        )
        return report

    def _run_unit(self, target: Target, results: "queue.Queue[Outcome]") -> None:
        try:
            outcome = self.run_one(target)
        except Exception as e:
            # keep the one-outcome-per-target guarantee even on a bug
            logger.exception("%s: unexpected error during check", target.id)
            outcome = Outcome(
                target_id=target.id,
                kind=OutcomeKind.CONNECT_FAILED,
                cause=f"Unexpected error: {type(e).__name__}: {e}",
            )
        results.put(outcome)
