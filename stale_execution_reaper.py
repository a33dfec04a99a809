#!/usr/bin/env python3
"""
Stale Execution Reaper
======================

Background cleanup of flow executions stuck in an intermediate status for
longer than allowed. Every stale execution is cancelled (or finalized when
unreachable), handed back for restart, and has its container deleted. Each
step is isolated: one failing step never prevents the others or the rest of
the batch.
"""

import argparse
import json
import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from collaborators import CancellationController, ContainerClient, ExecutionStore, RestartController
from config import (
    DEFAULT_DEV_POD_GRACE_HOURS,
    DEFAULT_SHUTDOWN_GRACE_SECONDS,
    LOG_FILE,
    LOG_LEVEL,
    ReaperSettings,
    load_settings,
)
from execution_models import (
    CycleReport,
    Execution,
    RemediationResult,
    RemediationStep,
    StalenessPolicy,
    StalenessRule,
    Status,
    StepOutcome,
    StepResult,
)
from logging_utils import configure_logging, level_from_name

logger = logging.getLogger(__name__)


class StaleExecutionReaper:
    """Periodically detect and clean up stale flow executions"""

    def __init__(self, execution_store: ExecutionStore,
                 cancellation_controller: CancellationController,
                 restart_controller: RestartController,
                 container_client: ContainerClient,
                 staleness_policy: Optional[StalenessPolicy] = None,
                 cleanup_interval_minutes: float = 10,
                 shutdown_grace_seconds: float = DEFAULT_SHUTDOWN_GRACE_SECONDS,
                 dev_pod_grace_hours: float = DEFAULT_DEV_POD_GRACE_HOURS,
                 clock: Callable[[], datetime] = datetime.now):
        self.execution_store = execution_store
        self.cancellation_controller = cancellation_controller
        self.restart_controller = restart_controller
        self.container_client = container_client
        self._policy = staleness_policy or StalenessPolicy.default()
        self.cleanup_interval_seconds = cleanup_interval_minutes * 60
        self.shutdown_grace_seconds = shutdown_grace_seconds
        self.dev_pod_grace = timedelta(hours=dev_pod_grace_hours)
        self.clock = clock

        self._stop_event = threading.Event()
        self._cancel_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._cycle_lock = threading.Lock()
        self.last_report: Optional[CycleReport] = None

    @classmethod
    def from_settings(cls, settings: ReaperSettings, execution_store: ExecutionStore,
                      cancellation_controller: CancellationController,
                      restart_controller: RestartController,
                      container_client: ContainerClient, **kwargs) -> "StaleExecutionReaper":
        policy = StalenessPolicy.default(settings.max_flow_running_minutes, settings.staleness_windows)
        return cls(
            execution_store, cancellation_controller, restart_controller, container_client,
            staleness_policy=policy,
            cleanup_interval_minutes=settings.cleanup_interval_minutes,
            shutdown_grace_seconds=settings.shutdown_grace_seconds,
            dev_pod_grace_hours=settings.dev_pod_grace_hours,
            **kwargs,
        )

    @property
    def staleness_policy(self) -> StalenessPolicy:
        return self._policy

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def reap_cycle(self) -> CycleReport:
        """Clean up stale executions for every monitored status once."""
        with self._cycle_lock:
            report = CycleReport(started_at=self.clock())
            for status in self._policy.monitored_statuses():
                if self._cancel_event.is_set():
                    report.cancelled = True
                    break
                self._reap_status(status, report)
            report.finished_at = self.clock()
            self.last_report = report

        logger.info(
            f"Reap cycle finished: {sum(1 for r in report.remediations if r.attempted)} remediated, "
            f"{len(report.skipped_executions)} skipped, {len(report.query_errors)} query errors"
        )
        return report

    def _reap_status(self, status: Status, report: CycleReport) -> None:
        rule = self._policy.rule_for(status)
        logger.info(f"Cleaning up stale flows for status: {status.value}")
        report.scanned_statuses.append(status)
        try:
            stale_executions = list(self.execution_store.list_by_status_and_age(
                status, rule.timestamp_field, rule.max_age
            ))
        except Exception as e:
            logger.error(f"❌ Error fetching stale flows for status {status.value}: {e}")
            report.query_errors[status] = str(e)
            return

        for index, execution in enumerate(stale_executions):
            if self._cancel_event.is_set():
                report.cancelled = True
                for pending in stale_executions[index:]:
                    report.remediations.append(RemediationResult.not_attempted(
                        pending.execution_id, pending.status, "cleanup cycle cancelled"
                    ))
                return
            try:
                ignore = self._should_ignore(execution, status, rule)
            except Exception as e:
                logger.error(f"❌ Error checking staleness of execution {execution.execution_id}: {e}")
                report.eligibility_errors[execution.execution_id] = str(e)
                ignore = True
            if ignore:
                report.skipped_executions.append(execution.execution_id)
                continue
            report.remediations.append(self._remediate(execution))

    def _should_ignore(self, execution: Execution, status: Status, rule: StalenessRule) -> bool:
        now = self.clock()
        reference = execution.timestamp_for(rule.timestamp_field)
        if reference is not None and now - reference < rule.max_age:
            logger.debug(f"Execution {execution.execution_id} is not stale yet, skipping")
            return True

        # Dev pods are kept alive on purpose while someone debugs them.
        if status == Status.PREPARING and execution.is_dev_pod:
            if execution.submit_time > now - self.dev_pod_grace:
                logger.info(f"Skipping dev pod execution {execution.execution_id}")
                return True
        return False

    def _remediate(self, execution: Execution) -> RemediationResult:
        # Restart eligibility depends on the status before cancellation.
        original_status = execution.status
        result = RemediationResult(execution.execution_id, original_status)
        result.steps.append(self._cancel_quietly(execution, original_status))
        result.steps.append(self._restart_quietly(execution, original_status))
        result.steps.append(self._delete_container_quietly(execution.execution_id))
        return result

    def _cancel_quietly(self, execution: Execution, original_status: Status) -> StepResult:
        try:
            logger.info(f"Cleaning up stale flow {execution.execution_id} in state {original_status.value}")
            self.cancellation_controller.cancel(execution, execution.submit_user)
            return StepResult(RemediationStep.CANCEL, StepOutcome.SUCCESS)
        except Exception as e:
            logger.error(f"❌ Error cancelling flow {execution.execution_id} during clean up: {e}")
            return StepResult(RemediationStep.CANCEL, StepOutcome.FAILED, str(e))

    def _restart_quietly(self, execution: Execution, original_status: Status) -> StepResult:
        try:
            logger.info(f"Restarting cleaned up flow {execution.execution_id}")
            self.restart_controller.restart(execution, original_status)
            return StepResult(RemediationStep.RESTART, StepOutcome.SUCCESS)
        except Exception as e:
            logger.error(f"❌ Error restarting flow {execution.execution_id} during clean up: {e}")
            return StepResult(RemediationStep.RESTART, StepOutcome.FAILED, str(e))

    def _delete_container_quietly(self, execution_id: int) -> StepResult:
        try:
            self.container_client.delete_container(execution_id)
            return StepResult(RemediationStep.DELETE_CONTAINER, StepOutcome.SUCCESS)
        except Exception as e:
            logger.error(f"❌ Error deleting container for execution {execution_id}: {e}")
            return StepResult(RemediationStep.DELETE_CONTAINER, StepOutcome.FAILED, str(e))

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Run reap cycles at a fixed rate, starting immediately"""
        if self.is_running:
            logger.warning("Container cleanup service is already running")
            return

        self._stop_event.clear()
        self._cancel_event.clear()
        self._thread = threading.Thread(target=self._cleanup_loop, name="container-cleanup", daemon=True)
        self._thread.start()
        logger.info(f"✅ Started container cleanup service (interval: {self.cleanup_interval_seconds}s)")

    def _cleanup_loop(self) -> None:
        next_run = time.monotonic()
        while not self._stop_event.is_set():
            try:
                self.reap_cycle()
            except Exception as e:
                logger.error(f"❌ Unexpected error in container cleanup loop: {e}")

            next_run += self.cleanup_interval_seconds
            delay = next_run - time.monotonic()
            if delay < 0:
                # Slow cycle: start the next one right away instead of piling up.
                next_run = time.monotonic()
                delay = 0
            self._stop_event.wait(delay)

    def shutdown(self, grace_seconds: Optional[float] = None) -> bool:
        """
        Stop the periodic cleanups.

        Waits up to `grace_seconds` for an in-flight cycle. After that the cycle
        is cancelled: it stops before the next execution or status. Returns True
        if the worker thread exited.
        """
        grace = self.shutdown_grace_seconds if grace_seconds is None else grace_seconds
        logger.info("Shutdown container cleanup service")
        self._stop_event.set()
        if self._thread is None:
            return True

        self._thread.join(timeout=grace)
        if self._thread.is_alive():
            logger.warning(f"⚠️ Cleanup cycle still running after {grace}s, cancelling it")
            self._cancel_event.set()
            self._thread.join(timeout=1)

        stopped = not self._thread.is_alive()
        if stopped:
            self._thread = None
            self._cancel_event.clear()
        else:
            logger.warning("⚠️ Cleanup thread is blocked in a remediation call, abandoning it")
        return stopped


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print the effective staleness policy")
    parser.add_argument("--config", help="YAML settings file")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    # Root logger first so warnings from load_settings are not lost
    root = configure_logging(LOG_LEVEL, LOG_FILE)
    settings = load_settings(args.config)
    root.setLevel(level_from_name(settings.log_level))
    policy = StalenessPolicy.default(settings.max_flow_running_minutes, settings.staleness_windows)
    print(json.dumps({
        "settings": settings.to_dict(),
        "policy": policy.as_dict(),
        "monitored_statuses": [s.value for s in policy.monitored_statuses()],
    }, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
