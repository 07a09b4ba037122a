"""
GraphStore - Bidirectional adjacency store for the task dependency graph.
GraphStore：任务依赖图的双向邻接存储。

The store holds:
  - nodes: dict of TaskNode keyed by task ID (insertion ordered)
  - dependencies: edges from a task to its prerequisites
  - dependents: the inverse edges, kept in sync on every registration

存储内容：
  - nodes:        以任务 ID 为键的 TaskNode 字典（保持插入顺序）
  - dependencies: 任务指向其前置任务的边
  - dependents:   反向边，每次注册时同步维护

Unknown prerequisites are recorded as placeholder nodes so edges can exist
before the real task arrives. Registering a placeholder's ID later merges
into it and keeps the dependents it has accumulated.
未知的前置任务以占位节点记录，使边可以先于真实任务存在。
之后注册该 ID 时会合并进占位节点，保留已累积的下游边。
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable, Iterator

from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticSerializationError

from resolver.errors import ValidationError
from schema import TaskMetadata, TaskNode

logger = logging.getLogger(__name__)


class GraphStore:
    """
    Canonical owner of every TaskNode. No other component mutates nodes.
    所有 TaskNode 的唯一所有者，其他组件不得直接修改节点。
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._nodes: dict[str, TaskNode] = {}
        self._clock = clock
        # (task_id, key order, snapshot of touched nodes) of the last uncommitted registration
        # 最近一次未提交注册的撤销信息：(任务 ID, 键顺序, 被修改节点的快照)
        self._pending: tuple[str, list[str], dict[str, TaskNode | None]] | None = None

    # ------------------------------------------------------------------
    # Queries
    # 查询方法
    # ------------------------------------------------------------------

    def get(self, task_id: str) -> TaskNode | None:
        return self._nodes.get(task_id)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[TaskNode]:
        return iter(self._nodes.values())

    def tasks(self) -> list[TaskNode]:
        """
        Real (non-placeholder) tasks in insertion order.
        按插入顺序返回所有真实任务（不含占位节点）。
        """
        return [n for n in self._nodes.values() if not n.placeholder]

    def edge_count(self) -> int:
        return sum(len(n.dependencies) for n in self._nodes.values())

    # ------------------------------------------------------------------
    # Mutations
    # 变更方法
    # ------------------------------------------------------------------

    def register(
        self,
        task_id: str,
        dependencies: Iterable[str] = (),
        metadata: TaskMetadata | dict[str, Any] | None = None,
    ) -> TaskNode:
        """
        Create, overwrite or merge the node for `task_id` and record its edges.
        创建、覆盖或合并 `task_id` 对应的节点，并记录其依赖边。

        Raises ValidationError for an empty ID, a malformed prerequisite ID or
        metadata that does not validate. Nothing is mutated in that case.
        ID 为空、前置 ID 非法或元数据校验失败时抛出 ValidationError，此时不做任何修改。

        The touched nodes are snapshotted first so that `remove()` can undo
        the registration exactly if the cycle check rejects it.
        修改前先对涉及的节点做快照，若环检测拒绝本次注册，`remove()` 可精确撤销。
        """
        _check_id(task_id, "Task id")
        if isinstance(dependencies, str):
            raise ValidationError("Dependencies must be a list of task ids, not a string")
        deps: list[str] = []
        for dep in dependencies:
            _check_id(dep, f"Prerequisite of task {task_id}")
            if dep not in deps:
                deps.append(dep)  # 去重，保留首次出现的顺序
        meta = _parse_metadata(task_id, metadata)

        previous = self._nodes.get(task_id)
        old_deps = previous.dependencies if previous is not None else []

        touched = list(dict.fromkeys([task_id, *old_deps, *deps]))
        snapshot = {
            nid: (self._nodes[nid].model_copy(deep=True) if nid in self._nodes else None)
            for nid in touched
        }
        self._pending = (task_id, list(self._nodes), snapshot)

        # Re-registration: drop edges to prerequisites no longer declared
        # 重复注册：断开不再声明的前置任务的反向边
        for old in old_deps:
            if old in deps:
                continue
            target = self._nodes.get(old)
            if target is None:
                continue
            target.remove_dependent(task_id)
            if target.placeholder and not target.dependents:
                del self._nodes[old]
                logger.debug("[Graph] Placeholder %s discarded (no dependents left)", old)

        node = TaskNode(
            id=task_id,
            dependencies=deps,
            dependents=list(previous.dependents) if previous is not None else [],
            metadata=meta,
            added_at=self._clock(),
        )
        self._nodes[task_id] = node  # 已存在的键保持原有位置

        if previous is not None and previous.placeholder:
            logger.debug("[Graph] Placeholder %s merged (%d dependents kept)", task_id, len(node.dependents))

        for dep in deps:
            target = self._nodes.get(dep)
            if target is None:
                target = TaskNode(id=dep, placeholder=True, added_at=self._clock())
                self._nodes[dep] = target
                logger.debug("[Graph] Placeholder created for missing prerequisite %s", dep)
            target.add_dependent(task_id)

        return node

    def commit(self) -> None:
        """Forget the undo snapshot of the last registration. 丢弃最近一次注册的撤销快照。"""
        self._pending = None

    def remove(self, task_id: str) -> None:
        """
        Remove `task_id` and the edges solely attributable to it.
        移除 `task_id` 及仅由它产生的边。

        Used for rollback after a rejected registration: if `task_id` is the
        pending registration, every touched node is restored to its previous
        record (a merged placeholder comes back with its dependents) and key
        order is preserved. Dependents of `task_id` are not repaired.
        用于被拒绝注册后的回滚：若 `task_id` 是待提交的注册，则所有被修改节点
        恢复为原记录（被合并的占位节点连同其下游边一起恢复），键顺序保持不变。
        不会修复 `task_id` 的下游任务。
        """
        if self._pending is not None and self._pending[0] == task_id:
            _, order, snapshot = self._pending
            self._pending = None
            self._nodes = {
                nid: (snapshot[nid] if nid in snapshot else self._nodes[nid])
                for nid in order
            }
            logger.debug("[Graph] Registration of %s rolled back", task_id)
            return

        node = self._nodes.pop(task_id, None)
        if node is None:
            return
        for dep in node.dependencies:
            target = self._nodes.get(dep)
            if target is None:
                continue
            target.remove_dependent(task_id)
            if target.placeholder and not target.dependents:
                del self._nodes[dep]
        logger.debug("[Graph] Node %s removed", task_id)


def _check_id(value: Any, what: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{what} must be a non-empty string, got {value!r}")


def _parse_metadata(task_id: str, metadata: TaskMetadata | dict[str, Any] | None) -> TaskMetadata:
    """
    Validate metadata and make sure it serializes to JSON.
    校验元数据，并确认其可以序列化为 JSON（TaskInfo 对外返回的形式）。
    """
    if metadata is None:
        return TaskMetadata()
    try:
        if isinstance(metadata, TaskMetadata):
            meta = metadata.model_copy(deep=True)
        else:
            meta = TaskMetadata.model_validate(metadata)
        meta.model_dump(mode="json")
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid metadata for task {task_id}: {exc}") from exc
    except (PydanticSerializationError, UnicodeDecodeError) as exc:
        raise ValidationError(f"Metadata of task {task_id} is not JSON-serializable: {exc}") from exc
    return meta
