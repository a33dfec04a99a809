#!/usr/bin/env python3
"""
Execution Data Model
====================

Execution records as read from the execution store, the per-status staleness
policy used by the reaper, and the result types a reap cycle reports.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

FLOW_PARAM_ENABLE_DEV_POD = "enable.dev.pod"

# Buffer added on top of the configured max running time so the reaper does
# not race the flow runner's own timeout handling.
RUNNING_VALIDITY_BUFFER_MINUTES = 60


class Status(Enum):
    READY = "READY"
    DISPATCHING = "DISPATCHING"
    PREPARING = "PREPARING"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    KILLING = "KILLING"
    EXECUTION_STOPPED = "EXECUTION_STOPPED"
    FAILED_FINISHING = "FAILED_FINISHING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    KILLED = "KILLED"
    CANCELLED = "CANCELLED"


class TimestampField(Enum):
    SUBMIT = "submit_time"
    START = "start_time"
    UPDATE = "update_time"


@dataclass
class Execution:
    """Read-only view of one flow execution"""
    execution_id: int
    flow_id: str
    status: Status
    submit_time: datetime
    submit_user: str
    start_time: Optional[datetime] = None
    update_time: Optional[datetime] = None
    parameters: Dict[str, str] = field(default_factory=dict)

    def timestamp_for(self, timestamp_field: TimestampField) -> Optional[datetime]:
        return getattr(self, timestamp_field.value)

    @property
    def is_dev_pod(self) -> bool:
        return str(self.parameters.get(FLOW_PARAM_ENABLE_DEV_POD, "")).strip().lower() == "true"


@dataclass(frozen=True)
class StalenessRule:
    max_age: timedelta
    timestamp_field: TimestampField

    @property
    def is_exempt(self) -> bool:
        return self.max_age < timedelta(0)


class StalenessPolicy:
    """
    Immutable Status -> StalenessRule table.

    A rule with a negative max age exempts its status from staleness checks.
    """

    def __init__(self, rules: Mapping[Status, StalenessRule]):
        self._rules = MappingProxyType(dict(rules))

    @classmethod
    def default(cls, max_flow_running_minutes: int = -1,
                overrides: Optional[Mapping[str, int]] = None) -> "StalenessPolicy":
        """
        Build the standard policy.

        Args:
            max_flow_running_minutes: Maximum time a flow may run. Positive values
                get a one hour buffer; zero or negative means running flows are
                never reaped.
            overrides: Optional status name -> minutes replacing the default
                window for that status. Unknown names are logged and ignored.
        """
        if max_flow_running_minutes > 0:
            running_validity = max_flow_running_minutes + RUNNING_VALIDITY_BUFFER_MINUTES
        else:
            running_validity = -1

        windows = {
            Status.DISPATCHING: (10, TimestampField.SUBMIT),
            Status.PREPARING: (15, TimestampField.SUBMIT),
            Status.RUNNING: (running_validity, TimestampField.START),
            Status.PAUSED: (running_validity, TimestampField.START),
            Status.KILLING: (15, TimestampField.UPDATE),
            Status.EXECUTION_STOPPED: (15, TimestampField.UPDATE),
            Status.FAILED_FINISHING: (running_validity, TimestampField.START),
        }

        for name, minutes in (overrides or {}).items():
            try:
                status = Status[name.upper()]
            except KeyError:
                logger.warning(f"Ignoring staleness window for unknown status {name}")
                continue
            if status not in windows:
                logger.warning(f"Ignoring staleness window for unmonitored status {name}")
                continue
            windows[status] = (minutes, windows[status][1])

        return cls({
            status: StalenessRule(timedelta(minutes=minutes), ts_field)
            for status, (minutes, ts_field) in windows.items()
        })

    @property
    def rules(self) -> Mapping[Status, StalenessRule]:
        return self._rules

    def rule_for(self, status: Status) -> Optional[StalenessRule]:
        return self._rules.get(status)

    def monitored_statuses(self) -> List[Status]:
        return [status for status, rule in self._rules.items() if not rule.is_exempt]

    def as_dict(self) -> Dict[str, Dict[str, Any]]:
        return {
            status.value: {
                "max_age_minutes": rule.max_age.total_seconds() / 60,
                "timestamp_field": rule.timestamp_field.value,
            }
            for status, rule in self._rules.items()
        }


class RemediationStep(Enum):
    CANCEL = "cancel"
    RESTART = "restart"
    DELETE_CONTAINER = "delete_container"


class StepOutcome(Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class StepResult:
    step: RemediationStep
    outcome: StepOutcome
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step.value,
            "outcome": self.outcome.value,
            "error": self.error,
        }


@dataclass
class RemediationResult:
    execution_id: int
    original_status: Status
    steps: List[StepResult] = field(default_factory=list)

    @classmethod
    def not_attempted(cls, execution_id: int, original_status: Status, reason: str) -> "RemediationResult":
        return cls(execution_id, original_status, [
            StepResult(step, StepOutcome.SKIPPED, reason) for step in RemediationStep
        ])

    @property
    def attempted(self) -> bool:
        return any(s.outcome != StepOutcome.SKIPPED for s in self.steps)

    @property
    def succeeded(self) -> bool:
        return all(s.outcome == StepOutcome.SUCCESS for s in self.steps)

    def outcome_of(self, step: RemediationStep) -> Optional[StepOutcome]:
        for result in self.steps:
            if result.step == step:
                return result.outcome
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "original_status": self.original_status.value,
            "steps": [s.to_dict() for s in self.steps],
        }


@dataclass
class CycleReport:
    """What one reap cycle looked at and did"""
    started_at: datetime
    finished_at: Optional[datetime] = None
    scanned_statuses: List[Status] = field(default_factory=list)
    query_errors: Dict[Status, str] = field(default_factory=dict)
    skipped_executions: List[int] = field(default_factory=list)
    # execution id -> why its eligibility could not be decided
    eligibility_errors: Dict[int, str] = field(default_factory=dict)
    remediations: List[RemediationResult] = field(default_factory=list)
    cancelled: bool = False

    def remediation_for(self, execution_id: int) -> Optional[RemediationResult]:
        for result in self.remediations:
            if result.execution_id == execution_id:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "scanned_statuses": [s.value for s in self.scanned_statuses],
            "query_errors": {s.value: err for s, err in self.query_errors.items()},
            "skipped_executions": list(self.skipped_executions),
            "eligibility_errors": dict(self.eligibility_errors),
            "remediations": [r.to_dict() for r in self.remediations],
            "cancelled": self.cancelled,
        }
