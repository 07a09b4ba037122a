"""
Pydantic data models for the Task Dependency Resolver.
Defines the core data structures shared by the graph store, planner,
lifecycle tracker and notification bus.
任务依赖解析器的 Pydantic 数据模型。
定义了图存储、规划器、生命周期追踪器和通知总线共用的核心数据结构。
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

import config


# ======================================================================
# Enums
# 枚举
# ======================================================================

class TaskStatus(str, Enum):
    """
    Task lifecycle states, managed by TaskStateMachine.
    任务生命周期状态，由 TaskStateMachine 强制管理合法转移。

    Transition graph:
    转移图：
        BLOCKED -> READY -> IN_PROGRESS -> COMPLETED
                                        -> FAILED
    """
    BLOCKED = "blocked"          # 等待前置依赖完成
    READY = "ready"              # 依赖已满足，等待调度
    IN_PROGRESS = "in_progress"  # 正在执行中
    COMPLETED = "completed"      # 成功完成（终态）
    FAILED = "failed"            # 执行失败（终态，下游永久阻塞）


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED})


class PriorityClass(str, Enum):
    """Declared priority class of a task. 任务声明的优先级等级。"""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ======================================================================
# Graph structures
# 图结构
# ======================================================================

class TaskMetadata(BaseModel):
    """
    Free-form task metadata. `priority` and `title` are understood by the
    resolver; any other keys are kept as-is for collaborators.
    自由格式的任务元数据。解析器只识别 priority 和 title，其余字段原样保留。
    """
    model_config = ConfigDict(extra="allow")

    priority: PriorityClass | None = None  # 优先级等级
    title: str | None = None               # 展示用标题


class TaskNode(BaseModel):
    """
    A single task in the dependency graph. Owned by GraphStore.
    依赖图中的单个任务节点，由 GraphStore 独占维护。

    `dependencies` and `dependents` are duplicate-free lists so that every
    traversal follows insertion order.
    dependencies 和 dependents 是去重列表，保证所有遍历都遵循插入顺序。
    """
    id: str = Field(description="Unique task identifier")                                      # 任务唯一 ID
    dependencies: list[str] = Field(default_factory=list, description="Prerequisite task IDs")  # 前置任务 ID
    dependents: list[str] = Field(default_factory=list, description="Tasks waiting on this one")  # 下游任务 ID（反向边）
    metadata: TaskMetadata = Field(default_factory=TaskMetadata)
    placeholder: bool = Field(default=False, description="Referenced but not yet registered")  # 占位节点标记
    added_at: float = Field(default_factory=time.time, description="Registration timestamp")   # 注册时间戳

    def add_dependent(self, task_id: str) -> None:
        if task_id not in self.dependents:
            self.dependents.append(task_id)

    def remove_dependent(self, task_id: str) -> None:
        if task_id in self.dependents:
            self.dependents.remove(task_id)


class TaskStatusRecord(BaseModel):
    """
    Per-task lifecycle record. Owned by LifecycleTracker.
    每个任务的生命周期记录，由 LifecycleTracker 独占维护。
    """
    status: TaskStatus
    blocked_by: list[str] = Field(default_factory=list, description="Prerequisites not yet completed")  # 尚未完成的前置任务
    start_time: float | None = None
    end_time: float | None = None
    success: bool | None = None
    result: Any = None

    @property
    def duration(self) -> float | None:
        if self.start_time is None or self.end_time is None:
            return None
        return self.end_time - self.start_time


# ======================================================================
# Priority weights
# 优先级权重
# ======================================================================

class PriorityWeights(BaseModel):
    """
    Tunable weights of the ready-task priority score.
    就绪任务优先级评分的可调权重，默认值来自 config。
    """
    dependent_weight: float = Field(default_factory=lambda: config.PRIORITY_DEPENDENT_WEIGHT, ge=0)
    critical_points: float = Field(default_factory=lambda: config.PRIORITY_CRITICAL_POINTS, ge=0)
    high_points: float = Field(default_factory=lambda: config.PRIORITY_HIGH_POINTS, ge=0)
    medium_points: float = Field(default_factory=lambda: config.PRIORITY_MEDIUM_POINTS, ge=0)
    low_points: float = Field(default_factory=lambda: config.PRIORITY_LOW_POINTS, ge=0)
    wait_unit_seconds: float = Field(default_factory=lambda: config.PRIORITY_WAIT_UNIT_SECONDS, gt=0)
    wait_cap: float = Field(default_factory=lambda: config.PRIORITY_WAIT_CAP, ge=0)
    order_weight: float = Field(default_factory=lambda: config.PRIORITY_ORDER_WEIGHT, ge=0)

    def class_points(self, priority: PriorityClass | None) -> float:
        return {
            PriorityClass.CRITICAL: self.critical_points,
            PriorityClass.HIGH: self.high_points,
            PriorityClass.MEDIUM: self.medium_points,
            PriorityClass.LOW: self.low_points,
        }.get(priority, 0.0)


# ======================================================================
# Query results
# 查询结果模型
# ======================================================================

class TaskInfo(BaseModel):
    """Full view of a single task. 单个任务的完整视图。"""
    id: str
    dependencies: list[str]
    dependents: list[str]
    status: TaskStatus
    blocked_by: list[str]
    metadata: dict[str, Any]
    priority: float


class AvailableTask(BaseModel):
    """A ready task with its current priority score. 带当前优先级分数的就绪任务。"""
    id: str
    priority: float
    metadata: dict[str, Any]


class GraphNode(BaseModel):
    id: str
    label: str
    status: TaskStatus
    priority: PriorityClass | None = None


class GraphEdge(BaseModel):
    source: str  # 前置任务
    target: str  # 依赖它的任务


class GraphSnapshot(BaseModel):
    """
    Nodes and edges for visualization collaborators (placeholders excluded).
    供可视化组件使用的节点与边（不含占位节点）。
    """
    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)


class TaskStatistics(BaseModel):
    """Aggregate progress. 聚合进度统计。"""
    total: int = 0
    blocked: int = 0
    ready: int = 0
    in_progress: int = 0
    completed: int = 0
    failed: int = 0
    avg_duration: float = Field(default=0.0, description="Mean seconds of successfully completed tasks")  # 成功任务平均耗时（秒）
    critical_path: list[str] = Field(default_factory=list)


# ======================================================================
# Events
# 事件模型（带 kind 标签的联合类型）
# ======================================================================

class EventKind(str, Enum):
    TASK_REGISTERED = "task_registered"
    TASK_STARTED = "task_started"
    TASK_COMPLETED = "task_completed"
    TASK_UNBLOCKED = "task_unblocked"
    ALL_TASKS_COMPLETE = "all_tasks_complete"


class TaskRegistered(BaseModel):
    kind: Literal["task_registered"] = "task_registered"
    task_id: str
    dependencies: list[str] = Field(default_factory=list)


class TaskStarted(BaseModel):
    kind: Literal["task_started"] = "task_started"
    task_id: str
    start_time: float


class TaskCompleted(BaseModel):
    kind: Literal["task_completed"] = "task_completed"
    task_id: str
    success: bool
    duration: float  # 秒


class TaskUnblocked(BaseModel):
    kind: Literal["task_unblocked"] = "task_unblocked"
    task_id: str


class AllTasksComplete(BaseModel):
    kind: Literal["all_tasks_complete"] = "all_tasks_complete"
    has_failures: bool


TaskEvent = Annotated[
    Union[TaskRegistered, TaskStarted, TaskCompleted, TaskUnblocked, AllTasksComplete],
    Field(discriminator="kind"),
]
