"""
LifecycleTracker - Per-task status, dependent unblocking and priority scoring.
LifecycleTracker：任务状态管理、下游解锁与优先级评分。

Every mutating method returns the events it produced instead of emitting
them, so the caller can publish them once the whole mutation is done.
所有变更方法都返回其产生的事件而不是直接发出，
调用方可以在整个变更完成后再统一发布。
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from resolver.errors import NotFoundError, NotReadyError
from resolver.graph import GraphStore
from resolver.state_machine import TaskStateMachine
from schema import (
    TERMINAL_STATUSES,
    AllTasksComplete,
    AvailableTask,
    PriorityWeights,
    TaskCompleted,
    TaskEvent,
    TaskStarted,
    TaskStatistics,
    TaskStatus,
    TaskStatusRecord,
    TaskUnblocked,
)

logger = logging.getLogger(__name__)


class LifecycleTracker:
    """
    Owns every TaskStatusRecord and all state transitions.
    持有所有 TaskStatusRecord 并负责全部状态转移。

    Failed tasks never unblock their dependents: anything waiting on a
    failed prerequisite stays BLOCKED. Retrying is up to the caller.
    失败的任务不会解锁下游：依赖失败任务的任务将一直处于 BLOCKED。重试由调用方负责。
    """

    def __init__(
        self,
        graph: GraphStore,
        weights: PriorityWeights | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._graph = graph
        self._records: dict[str, TaskStatusRecord] = {}
        self._sm = TaskStateMachine()
        self.weights = weights or PriorityWeights()
        self._clock = clock

    # ------------------------------------------------------------------
    # Record access
    # 记录访问
    # ------------------------------------------------------------------

    def get(self, task_id: str) -> TaskStatusRecord | None:
        return self._records.get(task_id)

    def _require(self, task_id: str) -> TaskStatusRecord:
        node = self._graph.get(task_id)
        record = self._records.get(task_id)
        if node is None or node.placeholder or record is None:
            raise NotFoundError(task_id)
        return record

    def _tracked(self) -> list[tuple[str, TaskStatusRecord]]:
        """Records of real tasks, in registration order. 真实任务的状态记录（按注册顺序）。"""
        items = []
        for task_id, record in self._records.items():
            node = self._graph.get(task_id)
            if node is not None and not node.placeholder:
                items.append((task_id, record))
        return items

    def create(self, task_id: str, dependencies: list[str]) -> TaskStatusRecord:
        """
        Create (or reset on re-registration) the status record of a task.
        创建任务的状态记录（重复注册时重置）。

        Prerequisites that already completed do not block the new task.
        已完成的前置任务不会阻塞新任务。
        """
        blocked_by = []
        for dep in dependencies:
            dep_record = self._records.get(dep)
            if dep_record is None or dep_record.status != TaskStatus.COMPLETED:
                blocked_by.append(dep)
        record = TaskStatusRecord(
            status=TaskStatus.BLOCKED if blocked_by else TaskStatus.READY,
            blocked_by=blocked_by,
        )
        self._records[task_id] = record
        return record

    # ------------------------------------------------------------------
    # Transitions
    # 状态转移
    # ------------------------------------------------------------------

    def start(self, task_id: str) -> TaskStarted:
        """
        READY -> IN_PROGRESS.
        Raises NotFoundError for unknown IDs and NotReadyError otherwise.
        """
        record = self._require(task_id)
        if record.status != TaskStatus.READY:
            raise NotReadyError(task_id, record.status.value)
        self._sm.transition(task_id, record, TaskStatus.IN_PROGRESS)
        record.start_time = self._clock()
        return TaskStarted(task_id=task_id, start_time=record.start_time)

    def complete(self, task_id: str, success: bool = True, result: Any = None) -> list[TaskEvent]:
        """
        IN_PROGRESS -> COMPLETED / FAILED, then unblock dependents on success.
        IN_PROGRESS -> COMPLETED / FAILED，成功时解锁下游任务。

        Returns the events in the order they happened: the completion itself,
        one TaskUnblocked per promoted dependent, then AllTasksComplete if
        nothing is left to run.
        按发生顺序返回事件：本任务完成事件、每个被解锁下游任务的 TaskUnblocked，
        若已无待执行任务则最后附上 AllTasksComplete。
        """
        record = self._require(task_id)
        self._sm.transition(task_id, record, TaskStatus.COMPLETED if success else TaskStatus.FAILED)
        record.end_time = self._clock()
        record.success = success
        record.result = result

        events: list[TaskEvent] = [
            TaskCompleted(task_id=task_id, success=success, duration=record.duration or 0.0)
        ]

        if success:
            for dependent_id in self._graph.get(task_id).dependents:
                unblocked = self._release(dependent_id, task_id)
                if unblocked is not None:
                    events.append(unblocked)
        else:
            logger.info("[Lifecycle] %s failed; %d dependents stay blocked",
                        task_id, len(self._graph.get(task_id).dependents))

        finished = self.check_completion()
        if finished is not None:
            events.append(finished)
        return events

    def _release(self, dependent_id: str, completed_id: str) -> TaskUnblocked | None:
        """
        Remove a satisfied prerequisite from a dependent's blocked-by set.
        从下游任务的 blocked_by 集合中移除已满足的前置任务。
        """
        record = self._records.get(dependent_id)
        if record is None:
            return None
        if completed_id in record.blocked_by:
            record.blocked_by.remove(completed_id)
        if not record.blocked_by and record.status == TaskStatus.BLOCKED:
            self._sm.transition(dependent_id, record, TaskStatus.READY)
            logger.info("[Lifecycle] %s unblocked", dependent_id)
            return TaskUnblocked(task_id=dependent_id)
        return None

    def check_completion(self) -> AllTasksComplete | None:
        """
        Return AllTasksComplete if every task is COMPLETED or FAILED.
        若所有任务均为 COMPLETED 或 FAILED，返回 AllTasksComplete。
        """
        tracked = self._tracked()
        if not tracked or any(r.status not in TERMINAL_STATUSES for _, r in tracked):
            return None
        has_failures = any(r.status == TaskStatus.FAILED for _, r in tracked)
        return AllTasksComplete(has_failures=has_failures)

    # ------------------------------------------------------------------
    # Priority
    # 优先级评分
    # ------------------------------------------------------------------

    def priority(self, task_id: str, positions: dict[str, int]) -> float:
        """
        Score a task from four factors (higher runs first):
          1. number of direct dependents (unblocks more work)
          2. declared priority class (critical > high > medium > low > unset)
          3. time since registration, capped so nothing starves forever
          4. position in the last topological order (earlier scores more)

        按四个因子为任务评分（分数越高越先执行）：
          1. 直接下游任务数量（能解锁更多工作）
          2. 声明的优先级等级（critical > high > medium > low > 未设置）
          3. 注册以来的等待时间（有上限，避免长期饥饿）
          4. 在最近拓扑序中的位置（越靠前分数越高）
        """
        node = self._graph.get(task_id)
        if node is None:
            return 0.0
        w = self.weights

        score = len(node.dependents) * w.dependent_weight
        score += w.class_points(node.metadata.priority)

        waited = max(0.0, self._clock() - node.added_at) / w.wait_unit_seconds
        score += min(waited, w.wait_cap)

        index = positions.get(task_id)
        if index is not None:
            score += (len(positions) - index) * w.order_weight

        return score

    def available(self, positions: dict[str, int]) -> list[AvailableTask]:
        """
        READY tasks sorted by priority, highest first.
        按优先级从高到低排序的 READY 任务。
        """
        available = [
            AvailableTask(
                id=task_id,
                priority=self.priority(task_id, positions),
                metadata=self._graph.get(task_id).metadata.model_dump(mode="json", exclude_none=True),
            )
            for task_id, record in self._tracked()
            if record.status == TaskStatus.READY
        ]
        available.sort(key=lambda t: t.priority, reverse=True)
        return available

    # ------------------------------------------------------------------
    # Statistics
    # 统计
    # ------------------------------------------------------------------

    def statistics(self) -> TaskStatistics:
        """Status counts and mean duration; the caller adds the critical path."""
        stats = TaskStatistics()
        durations: list[float] = []
        for _, record in self._tracked():
            stats.total += 1
            setattr(stats, record.status.value, getattr(stats, record.status.value) + 1)
            if record.status == TaskStatus.COMPLETED and record.duration is not None:
                durations.append(record.duration)
        if durations:
            stats.avg_duration = round(sum(durations) / len(durations), 3)
        return stats
