"""
Tests for AutomationService: trigger arming per automation type, cancellation,
replacement under the same ID and validation at the catalog boundary.
"""

import random
import threading
from datetime import time, timedelta
from unittest.mock import MagicMock, patch

import pytest

from conftest import NOW, run_due
from rackpower.domain.automations import AutoOffAutomation, IntervalToggleAutomation
from rackpower.domain.exceptions import NotFoundError, ValidationError
from rackpower.enums import AutomationType, Weekday
from rackpower.schemas import CreateAutomationRequest
from rackpower.services.hardware import AutomationService


def _time_range(**overrides):
    data = {"socketId": "s1", "type": "TIME_RANGE", "startTime": "08:00", "endTime": "20:00"}
    data.update(overrides)
    return data


# ==================== TIME_RANGE ====================


def test_time_range_without_days_arms_fourteen_weekly_triggers(automation_service, scheduler):
    automation = automation_service.create(_time_range())

    triggers = automation_service.armed_triggers(automation.id)
    assert len(triggers) == 14
    assert {t["schedule_type"] for t in triggers} == {"weekly"}
    assert sorted(t["day_of_week"] for t in triggers) == sorted(list(range(7)) * 2)
    assert len(scheduler.get_jobs(namespace=AutomationService.JOB_NAMESPACE)) == 14


def test_time_range_with_days_arms_one_pair_per_day(automation_service):
    automation = automation_service.create(_time_range(daysOfWeek=["MONDAY", "fri"]))

    triggers = automation_service.armed_triggers(automation.id)
    assert len(triggers) == 4
    assert sorted({t["day_of_week"] for t in triggers}) == [Weekday.MONDAY, Weekday.FRIDAY]
    assert sorted(t["time_of_day"] for t in triggers) == ["08:00:00", "08:00:00", "20:00:00", "20:00:00"]


def test_time_range_switches_on_and_off_at_configured_times(automation_service, scheduler, transport, status_cache):
    automation_service.create(_time_range(daysOfWeek=["MONDAY"]))

    # NOW is Monday 10:00, so today's 08:00 has passed; the off fires tonight
    assert run_due(scheduler, NOW + timedelta(hours=9, minutes=59)) == 0
    assert run_due(scheduler, NOW + timedelta(hours=10)) == 1
    assert transport.actions() == [("set_state", "s1", False)]
    assert status_cache.get("s1").output_on is False

    # Next Monday 08:00
    assert run_due(scheduler, NOW + timedelta(days=7, hours=-2)) == 1
    assert transport.actions()[-1] == ("set_state", "s1", True)
    assert status_cache.get("s1").output_on is True


def test_time_range_end_before_start_is_not_shifted_to_next_day(automation_service, scheduler):
    automation = automation_service.create(_time_range(startTime="22:00", endTime="06:00", daysOfWeek=[0]))

    jobs = {t["job_id"].split(":")[2]: t for t in automation_service.armed_triggers(automation.id)}
    assert jobs["off"]["day_of_week"] == Weekday.MONDAY
    assert jobs["off"]["time_of_day"] == "06:00:00"
    # Off on Monday morning (next week), on tonight
    assert jobs["on"]["next_run"] == "2026-03-02T22:00:00"
    assert jobs["off"]["next_run"] == "2026-03-09T06:00:00"


# ==================== INTERVAL_TOGGLE ====================


def test_interval_toggle_first_fires_after_one_full_interval(automation_service, scheduler, transport):
    automation_service.create({"socketId": "s2", "type": "INTERVAL_TOGGLE", "intervalMinutes": 5})

    assert run_due(scheduler, NOW) == 0
    assert run_due(scheduler, NOW + timedelta(minutes=4, seconds=59)) == 0
    assert transport.actions() == []

    assert run_due(scheduler, NOW + timedelta(minutes=5)) == 1
    assert transport.actions() == [("toggle", "s2")]

    assert run_due(scheduler, NOW + timedelta(minutes=9)) == 0
    assert run_due(scheduler, NOW + timedelta(minutes=10)) == 1
    assert transport.actions() == [("toggle", "s2"), ("toggle", "s2")]


def test_interval_toggle_confirms_state_with_a_read(automation_service, scheduler, transport, status_cache):
    automation_service.create({"socketId": "s2", "type": "INTERVAL_TOGGLE", "intervalMinutes": 1})

    run_due(scheduler, NOW + timedelta(minutes=1))

    assert transport.calls == [("toggle", "s2"), ("read", "s2")]
    assert status_cache.get("s2").online is True
    assert status_cache.get("s2").output_on is True


def test_unreachable_device_does_not_stop_recurrence(automation_service, scheduler, transport, status_cache):
    automation = automation_service.create({"socketId": "s3", "type": "INTERVAL_TOGGLE", "intervalMinutes": 1})
    transport.unreachable.add("s3")

    run_due(scheduler, NOW + timedelta(minutes=1))
    assert status_cache.get("s3").online is False

    transport.unreachable.clear()
    run_due(scheduler, NOW + timedelta(minutes=2))
    assert status_cache.get("s3").online is True
    assert transport.actions() == [("toggle", "s3"), ("toggle", "s3")]

    (trigger,) = automation_service.armed_triggers(automation.id)
    assert trigger["run_count"] == 2
    assert trigger["failure_count"] == 0


# ==================== AUTO_OFF ====================


def test_auto_off_switches_on_immediately_and_arms_one_off(automation_service, scheduler, transport, status_cache):
    automation = automation_service.create({"socketId": "s1", "type": "AUTO_OFF", "autoOffMinutes": 15})

    # Cache reflects the "on" as soon as create returns
    cached = status_cache.get("s1")
    assert cached is not None and cached.output_on is True
    assert transport.actions() == [("set_state", "s1", True)]

    (trigger,) = automation_service.armed_triggers(automation.id)
    assert trigger["schedule_type"] == "once"
    assert trigger["next_run"] == (NOW + timedelta(minutes=15)).isoformat()

    assert run_due(scheduler, NOW + timedelta(minutes=14)) == 0
    assert run_due(scheduler, NOW + timedelta(minutes=15)) == 1
    assert run_due(scheduler, NOW + timedelta(days=30)) == 0

    assert transport.actions() == [("set_state", "s1", True), ("set_state", "s1", False)]
    assert status_cache.get("s1").output_on is False
    assert automation_service.armed_triggers(automation.id) == []
    assert automation_service.list() == [automation]


def test_auto_off_on_unreachable_device_echoes_requested_state(automation_service, transport, status_cache):
    transport.unreachable.add("s1")

    automation_service.create({"socketId": "s1", "type": "AUTO_OFF", "autoOffMinutes": 1})

    cached = status_cache.get("s1")
    assert cached.online is False
    assert cached.output_on is True


# ==================== Cancellation / replacement ====================


def test_delete_before_first_firing_prevents_all_triggers(automation_service, scheduler, transport):
    automation = automation_service.create(_time_range())
    interval = automation_service.create({"socketId": "s2", "type": "INTERVAL_TOGGLE", "intervalMinutes": 1})

    automation_service.delete(automation.id)
    automation_service.delete(interval.id)

    assert scheduler.get_jobs(namespace=AutomationService.JOB_NAMESPACE) == []
    assert run_due(scheduler, NOW + timedelta(days=8)) == 0
    assert transport.calls == []
    assert automation_service.list() == []


def test_callback_from_deleted_automation_is_a_no_op(automation_service, scheduler, transport):
    automation = automation_service.create({"socketId": "s2", "type": "INTERVAL_TOGGLE", "intervalMinutes": 1})
    (trigger,) = automation_service.armed_triggers(automation.id)
    job = scheduler.get_job(trigger["job_id"])

    automation_service.delete(automation.id)

    # Simulates a firing already handed to a worker when delete ran
    assert job.func() is None
    assert transport.calls == []


def test_recreate_under_same_id_replaces_trigger_set(automation_service, scheduler, transport):
    automation_service.create({"id": "a1", "socketId": "s2", "type": "INTERVAL_TOGGLE", "intervalMinutes": 5})
    old_job = scheduler.get_jobs(namespace=AutomationService.JOB_NAMESPACE)[0]

    replacement = automation_service.create(
        {"id": "a1", "socketId": "s2", "type": "INTERVAL_TOGGLE", "intervalMinutes": 7}
    )

    assert automation_service.list() == [replacement]
    assert len(scheduler.get_jobs(namespace=AutomationService.JOB_NAMESPACE)) == 1
    assert old_job.cancelled is True
    assert old_job.func() is None

    assert run_due(scheduler, NOW + timedelta(minutes=5)) == 0
    assert run_due(scheduler, NOW + timedelta(minutes=7)) == 1
    assert transport.actions() == [("toggle", "s2")]


def test_recreate_with_different_type_drops_old_triggers(automation_service, scheduler):
    automation_service.create(_time_range(id="a1"))
    automation_service.create({"id": "a1", "socketId": "s1", "type": "INTERVAL_TOGGLE", "intervalMinutes": 2})

    triggers = automation_service.armed_triggers("a1")
    assert len(triggers) == 1
    assert len(scheduler.get_jobs(namespace=AutomationService.JOB_NAMESPACE)) == 1
    assert automation_service.get("a1").type == AutomationType.INTERVAL_TOGGLE


@pytest.mark.parametrize(
    "replacement",
    [
        {"id": "a1", "socketId": "s2", "type": "INTERVAL_TOGGLE", "intervalMinutes": 10**10},
        {"id": "a1", "socketId": "s2", "type": "AUTO_OFF", "autoOffMinutes": 10**10},
    ],
)
def test_oversized_replacement_keeps_previous_automation_armed(automation_service, scheduler, transport, replacement):
    original = automation_service.create({"id": "a1", "socketId": "s2", "type": "INTERVAL_TOGGLE", "intervalMinutes": 5})

    with pytest.raises(ValidationError, match="less than or equal"):
        automation_service.create(replacement)

    assert automation_service.list() == [original]
    assert len(automation_service.armed_triggers("a1")) == 1
    assert transport.calls == []
    assert run_due(scheduler, NOW + timedelta(minutes=5)) == 1
    assert transport.actions() == [("toggle", "s2")]


def test_failed_arming_leaves_previous_trigger_set_in_place(automation_service, scheduler, transport):
    original = automation_service.create({"id": "a1", "socketId": "s2", "type": "INTERVAL_TOGGLE", "intervalMinutes": 5})
    schedule_weekly = scheduler.schedule_weekly
    calls = []

    def flaky_weekly(*args, **kwargs):
        calls.append(kwargs["job_id"])
        if len(calls) > 3:
            raise OverflowError("date value out of range")
        return schedule_weekly(*args, **kwargs)

    with patch.object(scheduler, "schedule_weekly", side_effect=flaky_weekly):
        with pytest.raises(ValidationError, match="cannot be scheduled"):
            automation_service.create(_time_range(id="a1", socketId="s2"))

    assert automation_service.get("a1") == original
    jobs = scheduler.get_jobs(namespace=AutomationService.JOB_NAMESPACE)
    assert [job.job_id for job in jobs] == [t["job_id"] for t in automation_service.armed_triggers("a1")]
    assert len(jobs) == 1
    assert run_due(scheduler, NOW + timedelta(minutes=5)) == 1
    assert transport.actions() == [("toggle", "s2")]


def test_concurrent_create_and_delete_leave_consistent_state(automation_service, scheduler):
    errors = []

    def worker(seed):
        rng = random.Random(seed)
        try:
            for _ in range(50):
                if rng.random() < 0.5:
                    automation_service.create(
                        {"id": "race", "socketId": "s1", "type": "INTERVAL_TOGGLE", "intervalMinutes": rng.randint(1, 9)}
                    )
                else:
                    try:
                        automation_service.delete("race")
                    except NotFoundError:
                        pass
        except Exception as e:  # pragma: no cover - surfaced by the assertion below
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(seed,)) for seed in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert errors == []
    jobs = scheduler.get_jobs(namespace=AutomationService.JOB_NAMESPACE)
    if any(a.id == "race" for a in automation_service.list()):
        assert len(jobs) == 1
        assert automation_service.armed_triggers("race")[0]["job_id"] == jobs[0].job_id
    else:
        assert jobs == []


def test_shutdown_cancels_everything(automation_service, scheduler, transport):
    automation_service.create(_time_range())
    automation_service.create({"socketId": "s2", "type": "INTERVAL_TOGGLE", "intervalMinutes": 1})

    automation_service.shutdown()

    assert automation_service.list() == []
    assert scheduler.get_jobs() == []
    assert run_due(scheduler, NOW + timedelta(days=8)) == 0
    assert transport.calls == []


# ==================== Validation / not found ====================


def test_time_range_without_end_time_is_rejected(automation_service, scheduler):
    automation_service.create({"socketId": "s2", "type": "INTERVAL_TOGGLE", "intervalMinutes": 3})
    before = len(automation_service.list())

    with pytest.raises(ValidationError) as excinfo:
        automation_service.create(_time_range(endTime=None))

    assert "startTime and endTime are required" in str(excinfo.value)
    assert excinfo.value.http_status == 400
    assert len(automation_service.list()) == before
    assert len(scheduler.get_jobs()) == 1


def test_interval_toggle_with_zero_minutes_is_rejected(automation_service):
    with pytest.raises(ValidationError):
        automation_service.create({"socketId": "s1", "type": "INTERVAL_TOGGLE", "intervalMinutes": 0})
    assert automation_service.list() == []


def test_missing_type_specific_field_is_rejected(automation_service):
    with pytest.raises(ValidationError, match="autoOffMinutes"):
        automation_service.create({"socketId": "s1", "type": "AUTO_OFF"})


def test_unsupported_definition_is_rejected(automation_service):
    with pytest.raises(ValidationError):
        automation_service.create(["not", "a", "definition"])


def test_unknown_socket_is_not_found_and_catalog_unchanged(automation_service, scheduler, transport):
    with pytest.raises(NotFoundError):
        automation_service.create({"socketId": "nope", "type": "AUTO_OFF", "autoOffMinutes": 5})

    assert automation_service.list() == []
    assert scheduler.get_jobs() == []
    assert transport.calls == []


def test_delete_unknown_id_is_not_found(automation_service):
    with pytest.raises(NotFoundError):
        automation_service.delete("missing")


def test_get_and_armed_triggers_unknown_id_is_not_found(automation_service):
    with pytest.raises(NotFoundError):
        automation_service.get("missing")
    with pytest.raises(NotFoundError):
        automation_service.armed_triggers("missing")


# ==================== Accepted inputs ====================


def test_create_generates_distinct_ids(automation_service):
    first = automation_service.create(_time_range())
    second = automation_service.create(_time_range())

    assert first.id and second.id and first.id != second.id
    assert {a.id for a in automation_service.list()} == {first.id, second.id}


def test_create_accepts_request_and_variant(automation_service):
    request = CreateAutomationRequest(socket_id="s1", type="TIME_RANGE", start_time=time(7, 30), end_time=time(9, 0))
    from_request = automation_service.create(request)
    variant = automation_service.create(IntervalToggleAutomation(id="v1", socket_id="s3", interval_minutes=2))

    assert from_request.start_time == time(7, 30)
    assert automation_service.get("v1") is variant


def test_catalog_changes_are_audited(device_control, scheduler):
    audit = MagicMock()
    service = AutomationService(device_control, scheduler, audit_logger=audit, clock=lambda: NOW)

    service.create(AutoOffAutomation(id="a1", socket_id="s1", auto_off_minutes=5), actor="alice")
    service.create(AutoOffAutomation(id="a1", socket_id="s1", auto_off_minutes=6))
    service.delete("a1")

    actions = [c.kwargs["action"] for c in audit.log_event.call_args_list]
    assert actions == ["automation.create", "automation.replace", "automation.delete"]
    first = audit.log_event.call_args_list[0].kwargs
    assert first["actor"] == "alice"
    assert first["resource"] == "automation:a1"
    assert first["definition"]["auto_off_minutes"] == 5
