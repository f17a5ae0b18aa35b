"""
Automation Service
==================

Owns the automation catalog and turns each automation into scheduler jobs.

Every live automation has exactly one trigger set: the scheduler job IDs armed
on its behalf, stamped with a generation number. Creating an automation under
an existing ID arms a new set with a higher generation and then cancels the
old one inside one critical section, so a ``delete`` racing with a ``create``
leaves either nothing armed or only the new set. A set that cannot be armed
leaves the previous automation and its triggers untouched.

Job callbacks carry ``(automation_id, generation)`` and compare it with the
current trigger set before touching a device. A callback that was already
handed to a worker when its set was cancelled therefore does nothing.

Lock order: service lock, then scheduler lock. Device I/O always happens
outside both.
"""

from __future__ import annotations

import datetime
import functools
import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Mapping

from pydantic import ValidationError as PydanticValidationError

from rackpower.domain.automations import (
    Automation,
    AutoOffAutomation,
    IntervalToggleAutomation,
    TimeRangeAutomation,
)
from rackpower.domain.exceptions import NotFoundError, ValidationError
from rackpower.domain.sockets import Status
from rackpower.schemas import CreateAutomationRequest

if TYPE_CHECKING:
    from rackpower.infrastructure.logging import AuditLogger
    from rackpower.services.protocols import DeviceController
    from rackpower.workers.unified_scheduler import UnifiedScheduler

logger = logging.getLogger(__name__)

ACTION_ON = "on"
ACTION_OFF = "off"
ACTION_TOGGLE = "toggle"

_AUTOMATION_TYPES = (TimeRangeAutomation, IntervalToggleAutomation, AutoOffAutomation)


@dataclass(frozen=True)
class TriggerSet:
    """Scheduler jobs armed for one automation."""

    automation_id: str
    generation: int
    job_ids: tuple[str, ...]


class AutomationService:
    """Catalog of automations and the triggers armed for them."""

    JOB_NAMESPACE = "automation"

    def __init__(
        self,
        device_control: "DeviceController",
        scheduler: "UnifiedScheduler",
        audit_logger: "AuditLogger | None" = None,
        clock: Callable[[], datetime.datetime] = datetime.datetime.now,
    ):
        """
        Args:
            device_control: Facade used for every device action
            scheduler: Timer facility the triggers are armed on
            audit_logger: Receives one record per catalog change
            clock: Source of "now" when computing first firing times
        """
        self.device_control = device_control
        self.scheduler = scheduler
        self.audit_logger = audit_logger
        self._clock = clock

        self._automations: dict[str, Automation] = {}
        self._trigger_sets: dict[str, TriggerSet] = {}
        self._generation = 0
        self._lock = threading.RLock()

    # ==================== Catalog ====================

    def list(self) -> list[Automation]:
        """All live automations, in no particular order."""
        with self._lock:
            return list(self._automations.values())

    def get(self, automation_id: str) -> Automation:
        with self._lock:
            automation = self._automations.get(automation_id)
        if automation is None:
            raise NotFoundError(
                f"Automation {automation_id} not found",
                detail={"automation_id": automation_id},
            )
        return automation

    def create(self, definition: Any, *, actor: str = "system") -> Automation:
        """
        Validate, store and arm an automation.

        Args:
            definition: CreateAutomationRequest, a mapping accepted by it,
                or an already-built automation variant
            actor: Recorded in the audit log

        Returns:
            The stored automation (with a generated ID when none was given)

        Raises:
            ValidationError: Missing or invalid fields for the declared type
            NotFoundError: Target socket is not registered
        """
        automation = self._coerce(definition)

        # Raises NotFoundError before anything is stored
        self.device_control.resolve(automation.socket_id)

        with self._lock:
            replaced = automation.id in self._automations
            # A failure here leaves the previous set armed
            trigger_set = self._arm(automation)
            self._cancel_triggers(automation.id)
            self._trigger_sets[automation.id] = trigger_set
            self._automations[automation.id] = automation

        logger.info(
            f"{'Replaced' if replaced else 'Created'} {automation.type.value} automation "
            f"{automation.id} for socket {automation.socket_id} "
            f"({len(trigger_set.job_ids)} triggers, generation {trigger_set.generation})"
        )

        if isinstance(automation, AutoOffAutomation):
            # The "on" half of AUTO_OFF is immediate; skipped if a concurrent
            # create/delete already superseded this generation.
            self._fire(automation.id, trigger_set.generation, ACTION_ON, automation.socket_id)

        self._audit(actor, "replace" if replaced else "create", automation, definition=automation.to_dict())
        return automation

    def delete(self, automation_id: str, *, actor: str = "system") -> None:
        """
        Remove an automation and cancel all of its triggers.

        Raises:
            NotFoundError: No automation with this ID
        """
        with self._lock:
            automation = self._automations.pop(automation_id, None)
            if automation is None:
                raise NotFoundError(
                    f"Automation {automation_id} not found",
                    detail={"automation_id": automation_id},
                )
            self._cancel_triggers(automation_id)

        logger.info(f"Deleted automation {automation_id}")
        self._audit(actor, "delete", automation)

    def armed_triggers(self, automation_id: str) -> list[dict[str, Any]]:
        """Snapshot of the scheduler jobs currently armed for an automation."""
        with self._lock:
            if automation_id not in self._automations:
                raise NotFoundError(
                    f"Automation {automation_id} not found",
                    detail={"automation_id": automation_id},
                )
            trigger_set = self._trigger_sets.get(automation_id)
            job_ids = trigger_set.job_ids if trigger_set else ()

        jobs = [self.scheduler.get_job(job_id) for job_id in job_ids]
        # Fired one-shot jobs are no longer registered
        return [job.to_dict() for job in jobs if job is not None]

    def shutdown(self) -> None:
        """Cancel every trigger set and empty the catalog."""
        with self._lock:
            for automation_id in list(self._trigger_sets):
                self._cancel_triggers(automation_id)
            count = len(self._automations)
            self._automations.clear()
        logger.info(f"Automation service shut down ({count} automations cancelled)")

    # ==================== Trigger sets ====================

    def _arm(self, automation: Automation) -> TriggerSet:
        """
        Arm the jobs for ``automation`` under a fresh generation. Caller holds
        the lock and installs the returned set.

        Raises:
            ValidationError: A trigger time is outside the schedulable range;
                jobs armed so far are removed again
        """
        self._generation += 1
        generation = self._generation
        now = self._clock()
        prefix = f"{automation.id}:{generation}"
        job_ids: list[str] = []

        def callback(action: str) -> Callable[[], Status | None]:
            return functools.partial(self._fire, automation.id, generation, action, automation.socket_id)

        try:
            if isinstance(automation, TimeRangeAutomation):
                for day in automation.effective_days:
                    for action, at in ((ACTION_ON, automation.start_time), (ACTION_OFF, automation.end_time)):
                        job = self.scheduler.schedule_weekly(
                            callback(action),
                            int(day),
                            at,
                            job_id=f"{prefix}:{action}:{day.short_name}",
                            namespace=self.JOB_NAMESPACE,
                            now=now,
                        )
                        job_ids.append(job.job_id)

            elif isinstance(automation, IntervalToggleAutomation):
                job = self.scheduler.schedule_interval(
                    callback(ACTION_TOGGLE),
                    automation.interval_minutes * 60,
                    job_id=f"{prefix}:{ACTION_TOGGLE}",
                    namespace=self.JOB_NAMESPACE,
                    now=now,
                )
                job_ids.append(job.job_id)

            elif isinstance(automation, AutoOffAutomation):
                job = self.scheduler.schedule_once(
                    callback(ACTION_OFF),
                    now + datetime.timedelta(minutes=automation.auto_off_minutes),
                    job_id=f"{prefix}:{ACTION_OFF}",
                    namespace=self.JOB_NAMESPACE,
                )
                job_ids.append(job.job_id)

        except (OverflowError, ValueError) as e:
            self.scheduler.remove_jobs(job_ids)
            raise ValidationError(
                f"Automation {automation.id} cannot be scheduled: {e}",
                detail={"automation_id": automation.id},
            ) from e

        return TriggerSet(automation.id, generation, tuple(job_ids))

    def _cancel_triggers(self, automation_id: str) -> None:
        """Cancel the current trigger set, if any. Caller holds the lock."""
        trigger_set = self._trigger_sets.pop(automation_id, None)
        if trigger_set is None:
            return
        removed = self.scheduler.remove_jobs(trigger_set.job_ids)
        logger.debug(
            f"Cancelled generation {trigger_set.generation} of automation {automation_id} "
            f"({removed}/{len(trigger_set.job_ids)} jobs still armed)"
        )

    def _fire(self, automation_id: str, generation: int, action: str, socket_id: str) -> Status | None:
        """Job callback: perform ``action`` if the trigger set is still current."""
        with self._lock:
            current = self._trigger_sets.get(automation_id)
            if current is None or current.generation != generation:
                logger.debug(f"Skipping stale {action} for automation {automation_id} (generation {generation})")
                return None

        logger.debug(f"Automation {automation_id}: {action} socket {socket_id}")
        if action == ACTION_TOGGLE:
            return self.device_control.toggle(socket_id)
        return self.device_control.set_state(socket_id, action == ACTION_ON)

    # ==================== Helpers ====================

    @staticmethod
    def _coerce(definition: Any) -> Automation:
        if isinstance(definition, _AUTOMATION_TYPES):
            return definition
        try:
            if isinstance(definition, CreateAutomationRequest):
                request = definition
            elif isinstance(definition, Mapping):
                request = CreateAutomationRequest.model_validate(dict(definition))
            else:
                raise ValidationError(f"Unsupported automation definition: {type(definition).__name__}")
        except PydanticValidationError as e:
            errors = [
                {
                    "field": ".".join(str(part) for part in err.get("loc", ())),
                    "message": err.get("msg", "").removeprefix("Value error, "),
                }
                for err in e.errors()
            ]
            raise ValidationError(
                "; ".join(err["message"] for err in errors) or "Invalid automation definition",
                detail={"errors": errors},
            ) from None
        return request.to_automation()

    def _audit(self, actor: str, action: str, automation: Automation, **metadata: Any) -> None:
        if not self.audit_logger:
            return
        self.audit_logger.log_event(
            actor=actor,
            action=f"automation.{action}",
            resource=f"automation:{automation.id}",
            outcome="success",
            socket_id=automation.socket_id,
            type=automation.type.value,
            **metadata,
        )
