"""
Resolver errors.
解析器异常体系。

None of these are fatal: every rejected call leaves the engine exactly as it
was before the call.
以下异常均不致命：被拒绝的调用不会改变引擎的任何状态。
"""

from __future__ import annotations


class ResolverError(Exception):
    """Base class for all resolver errors. 所有解析器异常的基类。"""
    pass


class ValidationError(ResolverError):
    """
    Malformed registration input (empty id, bad prerequisite, bad metadata).
    注册输入不合法（空 ID、非法前置 ID、非法元数据）。
    """
    pass


class CyclicDependencyError(ResolverError):
    """
    Registration rejected because it would create a circular wait.
    注册会形成循环等待，已被拒绝并回滚。
    """

    def __init__(self, task_id: str, cycle: list[str] | None = None):
        self.task_id = task_id
        self.cycle = list(cycle or [])
        message = f"Circular dependency detected for task {task_id}"
        if self.cycle:
            message += f": {' -> '.join(self.cycle)}"
        super().__init__(message)


class NotFoundError(ResolverError):
    """Operation referenced an unknown task. 操作引用了不存在的任务。"""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")


class InvalidTransitionError(ResolverError):
    """
    Raised when an illegal state transition is attempted.
    当尝试非法状态转移时抛出此异常。
    """

    def __init__(self, task_id: str, current: str, target: str, message: str | None = None):
        self.task_id = task_id
        self.current = current
        self.target = target
        super().__init__(
            message or f"Task '{task_id}': cannot transition from {current} to {target}"
        )


class NotReadyError(InvalidTransitionError):
    """Start called on a task that is not ready. 对未就绪的任务调用了 start。"""

    def __init__(self, task_id: str, current: str):
        super().__init__(
            task_id, current, "in_progress",
            message=f"Task {task_id} is not ready to start (status: {current})",
        )
