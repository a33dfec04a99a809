#!/usr/bin/env python3
"""
Interfaces the reaper and the recommender depend on.

The host platform supplies the execution store and the cancel/restart
controllers; kubernetes_clients provides the orchestrator-facing ones.
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional

from execution_models import Execution, Status, TimestampField


class VPAAlreadyExistsError(Exception):
    """Raised by VPAClient.create_vpa when another caller created the VPA first"""


class ExecutionStore:
    def list_by_status_and_age(self, status: Status, timestamp_field: TimestampField,
                               max_age: timedelta) -> List[Execution]:
        """Executions in `status` whose `timestamp_field` is older than `max_age`."""
        raise NotImplementedError


class CancellationController:
    def cancel(self, execution: Execution, acting_user: str) -> None:
        """Gracefully kill the execution, or finalize it if it cannot be reached."""
        raise NotImplementedError


class RestartController:
    def restart(self, execution: Execution, prior_status: Status) -> None:
        raise NotImplementedError


class ContainerClient:
    def delete_container(self, execution_id: int) -> None:
        """Submit deletion of the execution's container resources and return."""
        raise NotImplementedError


class VPAClient:
    def get_vpa(self, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        """Return the VPA object, or None if it does not exist."""
        raise NotImplementedError

    def create_vpa(self, namespace: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Create the VPA. Raises VPAAlreadyExistsError if the name is taken."""
        raise NotImplementedError
