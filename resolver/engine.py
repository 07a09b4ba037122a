"""
TaskDependencyResolver - The scheduling engine.
TaskDependencyResolver：调度引擎。

Collaborators register tasks with their prerequisites, ask what can run now,
report start / completion, and query progress. Four cooperating parts:
协作组件注册任务及其前置依赖、查询当前可执行任务、汇报开始/完成并查询进度。
由四个协作部分组成：

  - GraphStore:       tasks and dependency / dependent edges     任务与双向依赖边
  - CycleDetector:    rejects registrations that create a cycle  拒绝会形成环的注册
  - OrderPlanner:     topological order and critical path         拓扑序与关键路径
  - LifecycleTracker: status, unblocking, priority scoring        状态、解锁、优先级评分

Registration flow:
注册流程：
    record edges -> cycle check (rollback on failure) -> replan order
    -> create status record (READY / BLOCKED) -> notify

Concurrency: every public method holds one re-entrant lock for its whole
mutate-then-recompute sequence; events are published after the lock is
released, so subscribers may call back into the resolver.
并发：每个公开方法在整个「变更-重算」过程中持有同一把可重入锁；
事件在释放锁之后发布，订阅者可以安全地回调解析器。
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Iterable

from resolver.cycles import CycleDetector
from resolver.errors import CyclicDependencyError, ValidationError
from resolver.events import EventBus, EventCallback
from resolver.graph import GraphStore
from resolver.lifecycle import LifecycleTracker
from resolver.planner import OrderPlanner
from schema import (
    AvailableTask,
    EventKind,
    GraphEdge,
    GraphNode,
    GraphSnapshot,
    PriorityWeights,
    TaskInfo,
    TaskMetadata,
    TaskRegistered,
    TaskStatistics,
    TaskStatus,
)

logger = logging.getLogger(__name__)


class TaskDependencyResolver:
    """
    In-memory dependency graph + scheduling engine. Instances share no state.
    内存中的依赖图与调度引擎。不同实例之间完全独立。
    """

    def __init__(
        self,
        weights: PriorityWeights | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._lock = threading.RLock()
        self._graph = GraphStore(clock=clock)
        self._cycles = CycleDetector(self._graph)
        self._planner = OrderPlanner(self._graph)
        self._lifecycle = LifecycleTracker(self._graph, weights=weights, clock=clock)
        self._events = EventBus()

    @property
    def execution_order(self) -> list[str]:
        """Last computed topological order. 最近一次计算出的拓扑执行顺序。"""
        with self._lock:
            return self._planner.order

    @property
    def weights(self) -> PriorityWeights:
        return self._lifecycle.weights

    # ------------------------------------------------------------------
    # Notifications
    # 事件订阅
    # ------------------------------------------------------------------

    def subscribe(self, kind: EventKind | str, callback: EventCallback) -> Callable[[], None]:
        return self._events.subscribe(kind, callback)

    def subscribe_all(self, callback: EventCallback) -> Callable[[], None]:
        return self._events.subscribe_all(callback)

    # ------------------------------------------------------------------
    # Commands
    # 命令
    # ------------------------------------------------------------------

    def register(
        self,
        task_id: str,
        dependencies: Iterable[str] | None = None,
        metadata: TaskMetadata | dict[str, Any] | None = None,
    ) -> TaskInfo:
        """
        Register a task with its prerequisites and return its TaskInfo.
        注册任务及其前置依赖，返回 TaskInfo。

        Raises ValidationError for malformed input and CyclicDependencyError
        if the task could reach itself; in both cases nothing changes.
        输入不合法时抛出 ValidationError，任务能经由依赖到达自身时抛出
        CyclicDependencyError；两种情况下都不会有任何状态变化。

        Re-registering replaces prerequisites and metadata and keeps dependents;
        it is refused with ValidationError once the task has started.
        重复注册会替换前置依赖与元数据并保留下游任务；任务一旦启动则拒绝重复注册。
        """
        with self._lock:
            try:
                self._check_reregistration(task_id)
                node = self._graph.register(task_id, dependencies or (), metadata)
            except ValidationError as exc:
                logger.warning("[Resolver] Registration rejected: %s", exc)
                raise

            cycle = self._cycles.find_cycle(task_id)
            if cycle is not None:
                self._graph.remove(task_id)
                logger.warning("[Resolver] Circular dependency for %s: %s", task_id, " -> ".join(cycle))
                raise CyclicDependencyError(task_id, cycle)
            self._graph.commit()

            self._planner.topological_sort()
            record = self._lifecycle.create(task_id, node.dependencies)
            info = self._info(task_id)
            event = TaskRegistered(task_id=task_id, dependencies=list(node.dependencies))
            logger.info("[Resolver] Task %s registered (%s, %d prerequisites)",
                        task_id, record.status.value, len(node.dependencies))

        self._events.publish([event])
        return info

    def _check_reregistration(self, task_id: str) -> None:
        """
        Only a task that has not started yet may be registered again.
        只有尚未启动的任务（BLOCKED / READY）允许重复注册。
        """
        if not isinstance(task_id, str):
            return  # GraphStore.register reports the malformed id
        record = self._lifecycle.get(task_id)
        if record is not None and record.status not in (TaskStatus.BLOCKED, TaskStatus.READY):
            raise ValidationError(
                f"Task {task_id} cannot be registered again (status: {record.status.value})"
            )

    def start(self, task_id: str) -> bool:
        """
        Mark a READY task as in progress.
        将 READY 任务标记为执行中。
        Raises NotFoundError / NotReadyError.
        """
        with self._lock:
            event = self._lifecycle.start(task_id)
            logger.info("[Resolver] Task %s started", task_id)
        self._events.publish([event])
        return True

    def complete(self, task_id: str, success: bool = True, result: Any = None) -> list[AvailableTask]:
        """
        Finish an in-progress task and return the tasks that can run now.
        结束执行中的任务，返回当前可执行的任务列表。

        Only a successful completion unblocks dependents.
        只有成功完成才会解锁下游任务。
        """
        with self._lock:
            events = self._lifecycle.complete(task_id, success=success, result=result)
            logger.info("[Resolver] Task %s %s", task_id, "completed" if success else "failed")
            available = self._lifecycle.available(self._planner.positions())
        self._events.publish(events)
        return available

    # ------------------------------------------------------------------
    # Queries
    # 查询
    # ------------------------------------------------------------------

    def available_tasks(self) -> list[AvailableTask]:
        """READY tasks, highest priority first. 按优先级从高到低返回 READY 任务。"""
        with self._lock:
            return self._lifecycle.available(self._planner.positions())

    def task_info(self, task_id: str) -> TaskInfo | None:
        """Full view of a task, or None for unknown / placeholder IDs."""
        with self._lock:
            return self._info(task_id)

    def _info(self, task_id: str) -> TaskInfo | None:
        node = self._graph.get(task_id)
        record = self._lifecycle.get(task_id)
        if node is None or node.placeholder or record is None:
            return None
        return TaskInfo(
            id=task_id,
            dependencies=list(node.dependencies),
            dependents=list(node.dependents),
            status=record.status,
            blocked_by=list(record.blocked_by),
            metadata=node.metadata.model_dump(mode="json", exclude_none=True),
            priority=self._lifecycle.priority(task_id, self._planner.positions()),
        )

    def graph_snapshot(self) -> GraphSnapshot:
        """
        Nodes and edges for visualization; placeholders and their edges are left out.
        用于可视化的节点与边；占位节点及其边不包含在内。
        """
        with self._lock:
            snapshot = GraphSnapshot()
            for node in self._graph.tasks():
                snapshot.nodes.append(GraphNode(
                    id=node.id,
                    label=node.metadata.title or node.id,
                    status=self._lifecycle.get(node.id).status,
                    priority=node.metadata.priority,
                ))
                for dep in node.dependencies:
                    source = self._graph.get(dep)
                    if source is not None and not source.placeholder:
                        snapshot.edges.append(GraphEdge(source=dep, target=node.id))
            return snapshot

    def statistics(self) -> TaskStatistics:
        """Counts per status, mean duration and the critical path."""
        with self._lock:
            stats = self._lifecycle.statistics()
            stats.critical_path = self._planner.critical_path()
            return stats

    def summary(self) -> str:
        """
        One-line summary for logging, e.g. Resolver[5 tasks: 2 completed, 3 blocked]
        生成单行状态摘要，用于日志输出。
        """
        stats = self.statistics()
        parts = [
            f"{getattr(stats, name)} {name}"
            for name in ("blocked", "ready", "in_progress", "completed", "failed")
            if getattr(stats, name)
        ]
        return f"Resolver[{stats.total} tasks: {', '.join(parts) or 'none'}]"
