"""Domain Models 单元测试

测试内容：
1. Task / WorkSession / ExternalRecord 默认值与派生属性
2. 生命周期状态机
3. TaskFacts 派生事实
4. 时间戳落库格式
"""

from datetime import UTC, datetime, timedelta, timezone

import pytest
from tasklane.core.models import (
    TERMINAL_LIFECYCLES,
    VALID_TRANSITIONS,
    EventType,
    ExternalRecord,
    ExternalStatus,
    Lifecycle,
    SessionPayload,
    StageRule,
    Status,
    Task,
    TaskChanges,
    TaskFacts,
    Tier,
    TimerState,
    WorkHistory,
    WorkSession,
    validate_transition,
)
from tasklane.core.timeutil import from_db, to_db, utc

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class TestTaskModel:
    def test_defaults(self):
        task = Task(task_id=1, description="写周报", created_at=NOW, updated_at=NOW)
        assert task.lifecycle == Lifecycle.OPEN
        assert task.queue_position is None
        assert task.queued is False
        assert task.is_terminal is False
        assert task.tags == []

    def test_terminal(self):
        task = Task(
            task_id=1,
            description="x",
            lifecycle=Lifecycle.CANCELLED,
            created_at=NOW,
            updated_at=NOW,
        )
        assert task.is_terminal is True

    def test_negative_alloc_rejected(self):
        with pytest.raises(ValueError):
            TaskChanges(alloc_secs=-1)

    def test_changes_track_unset_fields(self):
        changes = TaskChanges(project="home")
        assert changes.model_dump(exclude_unset=True) == {"project": "home"}


class TestWorkSession:
    def test_closed_duration(self):
        session = WorkSession(
            session_id=1,
            task_id=1,
            start_ts=NOW,
            end_ts=NOW + timedelta(seconds=90),
            created_at=NOW,
        )
        assert session.is_open is False
        assert session.duration() == timedelta(seconds=90)

    def test_open_duration_needs_until(self):
        session = WorkSession(session_id=1, task_id=1, start_ts=NOW, created_at=NOW)
        assert session.is_open is True
        with pytest.raises(ValueError):
            session.duration()
        assert session.duration(until=NOW + timedelta(minutes=2)) == timedelta(minutes=2)


class TestExternalRecord:
    def test_waiting_by_default(self):
        record = ExternalRecord(external_id=1, task_id=3, recipient="alice", sent_at=NOW)
        assert record.status == ExternalStatus.WAITING
        assert record.waiting is True
        returned = record.model_copy(update={"status": ExternalStatus.RETURNED})
        assert returned.waiting is False


class TestLifecycleTransitions:
    @pytest.mark.parametrize(
        "from_lifecycle,to_lifecycle",
        [
            (Lifecycle.OPEN, Lifecycle.CLOSED),
            (Lifecycle.OPEN, Lifecycle.CANCELLED),
        ],
    )
    def test_valid_transition(self, from_lifecycle: Lifecycle, to_lifecycle: Lifecycle):
        assert validate_transition(from_lifecycle, to_lifecycle) is True

    @pytest.mark.parametrize(
        "from_lifecycle,to_lifecycle",
        [
            (Lifecycle.OPEN, Lifecycle.OPEN),
            (Lifecycle.CLOSED, Lifecycle.OPEN),
            (Lifecycle.CANCELLED, Lifecycle.CLOSED),
        ],
    )
    def test_invalid_transition(self, from_lifecycle: Lifecycle, to_lifecycle: Lifecycle):
        assert validate_transition(from_lifecycle, to_lifecycle) is False

    def test_terminal_states_have_no_transitions(self):
        for terminal in TERMINAL_LIFECYCLES:
            assert VALID_TRANSITIONS[terminal] == set()
            for target in Lifecycle:
                assert validate_transition(terminal, target) is False


class TestTaskFacts:
    def test_derived_facts(self):
        facts = TaskFacts(task_id=1, lifecycle=Lifecycle.OPEN)
        assert facts.queued is False
        assert facts.work_history == WorkHistory.PENDING
        assert facts.timer == TimerState.OFF

        facts = TaskFacts(
            task_id=1,
            lifecycle=Lifecycle.OPEN,
            queue_position=0,
            has_history=True,
            timer_on=True,
        )
        assert facts.queued is True
        assert facts.work_history == WorkHistory.INITIATED
        assert facts.timer == TimerState.ON


class TestStageRule:
    def test_key_uses_wildcards(self):
        rule = StageRule(tier=Tier.EXTERNAL, status=Status.EXTERNAL)
        assert rule.key == (Tier.EXTERNAL, None, None)

    def test_status_values_are_user_facing(self):
        assert Status.IN_PROGRESS.value == "in progress"
        assert EventType.SESSION_PURGED.value == "SESSION_PURGED"


class TestTimestamps:
    def test_naive_is_utc(self):
        naive = datetime(2026, 3, 2, 9, 0)
        assert utc(naive) == NOW

    def test_converts_offsets(self):
        local = datetime(2026, 3, 2, 17, 0, tzinfo=timezone(timedelta(hours=8)))
        assert utc(local) == NOW
        assert utc(local).tzinfo == UTC

    def test_db_text_is_fixed_width_and_ordered(self):
        earlier = to_db(NOW)
        later = to_db(NOW + timedelta(microseconds=1))
        assert len(earlier) == len(later)
        assert earlier < later
        assert from_db(earlier) == NOW
        assert from_db(None) is None

    def test_payload_json_mode(self):
        payload = SessionPayload(session_id=4, start_ts=NOW)
        dumped = payload.model_dump(mode="json")
        assert dumped["session_id"] == 4
        assert dumped["end_ts"] is None
        assert isinstance(dumped["start_ts"], str)
