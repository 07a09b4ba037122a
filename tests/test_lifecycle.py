"""
生命周期与优先级测试，覆盖：
  1. 状态机强制合法转移 (BLOCKED -> READY -> IN_PROGRESS -> COMPLETED/FAILED)
  2. 完成时解锁下游、失败时下游永久阻塞
  3. 优先级评分四个因子的单调方向（只验证方向，不验证具体分值）

运行方式:
    pytest tests/test_lifecycle.py -v
"""

from __future__ import annotations

import pytest

from resolver import TaskDependencyResolver
from resolver.errors import InvalidTransitionError, NotFoundError, NotReadyError
from resolver.state_machine import VALID_TRANSITIONS, TaskStateMachine
from schema import PriorityClass, PriorityWeights, TaskStatus, TaskStatusRecord


def _only(**weights: float) -> PriorityWeights:
    """只启用指定因子的权重，其余因子置 0，便于单独验证某一因子."""
    base = dict(
        dependent_weight=0, critical_points=0, high_points=0, medium_points=0,
        low_points=0, wait_unit_seconds=60, wait_cap=0, order_weight=0,
    )
    base.update(weights)
    return PriorityWeights(**base)


# ======================================================================
# Test 1: 状态机
# ======================================================================


class TestStateMachine:

    def test_transition_table(self):
        assert VALID_TRANSITIONS[TaskStatus.BLOCKED] == {TaskStatus.READY}
        assert VALID_TRANSITIONS[TaskStatus.READY] == {TaskStatus.IN_PROGRESS}
        assert VALID_TRANSITIONS[TaskStatus.IN_PROGRESS] == {TaskStatus.COMPLETED, TaskStatus.FAILED}
        assert VALID_TRANSITIONS[TaskStatus.COMPLETED] == set()
        assert VALID_TRANSITIONS[TaskStatus.FAILED] == set()

    def test_happy_path(self):
        sm = TaskStateMachine()
        record = TaskStatusRecord(status=TaskStatus.BLOCKED)
        for target in (TaskStatus.READY, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED):
            sm.transition("T", record, target)
        assert record.status == TaskStatus.COMPLETED

    @pytest.mark.parametrize("current, target", [
        (TaskStatus.BLOCKED, TaskStatus.IN_PROGRESS),
        (TaskStatus.READY, TaskStatus.COMPLETED),
        (TaskStatus.COMPLETED, TaskStatus.READY),
        (TaskStatus.FAILED, TaskStatus.IN_PROGRESS),
    ])
    def test_illegal_transitions_raise(self, current, target):
        sm = TaskStateMachine()
        record = TaskStatusRecord(status=current)
        with pytest.raises(InvalidTransitionError):
            sm.transition("T", record, target)
        assert record.status == current, "非法转移不能修改状态"


# ======================================================================
# Test 2: 生命周期
# ======================================================================


class TestLifecycle:

    def test_task_without_prerequisites_is_ready(self, resolver):
        info = resolver.register("A")
        assert info.status == TaskStatus.READY
        assert info.blocked_by == []

    def test_task_with_prerequisites_is_blocked(self, resolver):
        resolver.register("A")
        info = resolver.register("B", ["A", "LATER"])
        assert info.status == TaskStatus.BLOCKED
        assert info.blocked_by == ["A", "LATER"]

    def test_success_unblocks_only_dependent(self, resolver):
        resolver.register("A")
        resolver.register("B", ["A"])
        resolver.start("A")
        resolver.complete("A", success=True)

        b = resolver.task_info("B")
        assert b.status == TaskStatus.READY
        assert b.blocked_by == []

    def test_partial_completion_keeps_blocked(self, resolver):
        resolver.register("A")
        resolver.register("B")
        resolver.register("C", ["A", "B"])
        resolver.start("A")
        resolver.complete("A")

        c = resolver.task_info("C")
        assert c.status == TaskStatus.BLOCKED
        assert c.blocked_by == ["B"], "blocked_by 始终是前置任务的子集，且只剩未完成的"

    def test_failure_leaves_dependents_blocked(self, resolver):
        """失败的前置任务不会解锁下游（保守策略，没有重试）."""
        resolver.register("A")
        resolver.register("B", ["A"])
        resolver.start("A")
        resolver.complete("A", success=False, result={"error": "boom"})

        assert resolver.task_info("A").status == TaskStatus.FAILED
        b = resolver.task_info("B")
        assert b.status == TaskStatus.BLOCKED
        assert b.blocked_by == ["A"]

    def test_late_registration_after_completed_prerequisite(self, resolver):
        """前置任务已完成后才注册的任务应直接就绪."""
        resolver.register("A")
        resolver.start("A")
        resolver.complete("A")

        assert resolver.register("B", ["A"]).status == TaskStatus.READY

    def test_placeholder_registered_later_then_unblocks(self, resolver):
        resolver.register("API", ["DB"])
        resolver.register("DB")
        resolver.start("DB")
        resolver.complete("DB")

        assert resolver.task_info("API").status == TaskStatus.READY

    def test_start_requires_ready(self, resolver):
        resolver.register("A")
        resolver.register("B", ["A"])

        with pytest.raises(NotReadyError):
            resolver.start("B")
        resolver.start("A")
        with pytest.raises(NotReadyError):
            resolver.start("A")

    def test_unknown_and_placeholder_ids_not_found(self, resolver):
        resolver.register("B", ["GHOST"])
        for task_id in ("missing", "GHOST"):
            with pytest.raises(NotFoundError):
                resolver.start(task_id)
            with pytest.raises(NotFoundError):
                resolver.complete(task_id)

    def test_complete_requires_in_progress(self, resolver):
        resolver.register("A")
        with pytest.raises(InvalidTransitionError):
            resolver.complete("A")
        assert resolver.task_info("A").status == TaskStatus.READY

    def test_complete_twice_rejected(self, resolver):
        resolver.register("A")
        resolver.start("A")
        resolver.complete("A")
        with pytest.raises(InvalidTransitionError):
            resolver.complete("A", success=False)
        assert resolver.task_info("A").status == TaskStatus.COMPLETED


# ======================================================================
# Test 3: 优先级评分（单调方向）
# ======================================================================


class TestPriority:

    def test_more_dependents_scores_higher(self, clock):
        resolver = TaskDependencyResolver(weights=_only(dependent_weight=10), clock=clock)
        resolver.register("LONELY")
        resolver.register("HUB")
        resolver.register("X", ["HUB"])
        resolver.register("Y", ["HUB"])

        ranked = resolver.available_tasks()
        assert [t.id for t in ranked] == ["HUB", "LONELY"]
        assert ranked[0].priority > ranked[1].priority

    def test_priority_class_order(self, clock):
        resolver = TaskDependencyResolver(
            weights=_only(critical_points=100, high_points=50, medium_points=25, low_points=10),
            clock=clock,
        )
        resolver.register("UNSET")
        for cls in ("low", "medium", "high", "critical"):
            resolver.register(cls.upper(), [], {"priority": cls})

        ranked = [t.id for t in resolver.available_tasks()]
        assert ranked == ["CRITICAL", "HIGH", "MEDIUM", "LOW", "UNSET"]

    def test_older_task_scores_higher_up_to_cap(self, clock):
        resolver = TaskDependencyResolver(weights=_only(wait_cap=50, wait_unit_seconds=60), clock=clock)
        resolver.register("OLD")
        clock.advance(600)
        resolver.register("NEW")

        old, new = resolver.task_info("OLD"), resolver.task_info("NEW")
        assert old.priority > new.priority, "等待越久分数越高"

        clock.advance(10 ** 7)
        old, new = resolver.task_info("OLD"), resolver.task_info("NEW")
        assert old.priority == new.priority == 50, "等待加分有上限"

    def test_earlier_order_position_scores_higher(self, clock):
        resolver = TaskDependencyResolver(weights=_only(order_weight=1), clock=clock)
        resolver.register("FIRST")
        resolver.register("SECOND")

        ranked = resolver.available_tasks()
        assert [t.id for t in ranked] == ["FIRST", "SECOND"]
        assert ranked[0].priority > ranked[1].priority

    def test_default_weights_keep_class_direction(self):
        weights = PriorityWeights()
        points = [weights.class_points(c) for c in (
            PriorityClass.CRITICAL, PriorityClass.HIGH, PriorityClass.MEDIUM, PriorityClass.LOW, None,
        )]
        assert points == sorted(points, reverse=True)
        assert points[-1] == 0

    def test_available_is_sorted_descending(self, resolver):
        resolver.register("A", [], {"priority": "low"})
        resolver.register("B", [], {"priority": "critical"})
        resolver.register("C", ["A"])
        scores = [t.priority for t in resolver.available_tasks()]
        assert scores == sorted(scores, reverse=True)
