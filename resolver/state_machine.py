"""
Task State Machine - Validates and enforces task lifecycle transitions.
任务状态机：校验并强制执行任务生命周期的合法状态转移。

The transition table is the single source of truth for what state changes
are legal. Any invalid transition raises InvalidTransitionError, so a status
record can never reach an inconsistent state.
转移表是合法状态变化的唯一权威来源。
任何非法转移都会抛出 InvalidTransitionError，状态记录不会进入不一致状态。

Transition graph:
转移图：
    BLOCKED ──> READY ──> IN_PROGRESS ──> COMPLETED
                                      ──> FAILED
"""

from __future__ import annotations

import logging

from resolver.errors import InvalidTransitionError
from schema import TaskStatus, TaskStatusRecord

logger = logging.getLogger(__name__)


VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.BLOCKED:     {TaskStatus.READY},
    TaskStatus.READY:       {TaskStatus.IN_PROGRESS},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    # Terminal states, no further transitions allowed
    # 终态，不允许任何进一步转移
    TaskStatus.COMPLETED:   set(),
    TaskStatus.FAILED:      set(),
}


class TaskStateMachine:
    """
    Validates and applies task state transitions.
    校验并应用任务状态转移。
    """

    def can_transition(self, record: TaskStatusRecord, new_status: TaskStatus) -> bool:
        return new_status in VALID_TRANSITIONS.get(record.status, set())

    def transition(self, task_id: str, record: TaskStatusRecord, new_status: TaskStatus) -> None:
        """
        Apply a state transition. Raises InvalidTransitionError if illegal.
        应用状态转移。若转移非法则抛出 InvalidTransitionError。
        """
        if not self.can_transition(record, new_status):
            raise InvalidTransitionError(
                task_id,
                record.status.value,
                new_status.value,
                message=(
                    f"Task '{task_id}': cannot transition from {record.status.value} to {new_status.value}. "
                    f"Valid targets: {sorted(s.value for s in VALID_TRANSITIONS.get(record.status, set()))}"
                ),
            )

        old_status = record.status
        record.status = new_status
        logger.debug("[SM] %s: %s -> %s", task_id, old_status.value, new_status.value)
