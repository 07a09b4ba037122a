"""
CycleDetector - Circular dependency detection by depth-first traversal.
CycleDetector：基于深度优先遍历的循环依赖检测。

Starting from a freshly registered task, follow prerequisite edges while
tracking two sets:
  - visited:  nodes fully explored during this call
  - on_stack: nodes on the active traversal path
An edge that reaches a node already on the stack closes a cycle.

从新注册的任务出发，沿前置依赖边遍历，同时维护两个集合：
  - visited:  本次调用中已完全探索的节点
  - on_stack: 当前遍历路径上的节点
若某条边指向已在路径上的节点，即构成环。

Both sets are local to each call: the graph changes between registrations,
so nothing may carry over from a previous check.
两个集合都是单次调用的局部变量：图在两次注册之间会变化，不能沿用上一次的检查状态。
"""

from __future__ import annotations

import logging
from typing import Iterator

from resolver.graph import GraphStore

logger = logging.getLogger(__name__)


class CycleDetector:
    """Checks whether a task can reach itself through its prerequisites."""

    def __init__(self, graph: GraphStore):
        self._graph = graph

    def _prerequisites(self, task_id: str) -> Iterator[str]:
        node = self._graph.get(task_id)
        return iter(node.dependencies if node is not None else ())

    def find_cycle(self, start: str) -> list[str] | None:
        """
        Return the cycle reachable from `start` as a list of IDs (first and
        last element equal), or None if there is none.
        返回从 `start` 可达的环（首尾元素相同的 ID 列表），无环时返回 None。

        Iterative, so very deep prerequisite chains do not hit the recursion limit.
        使用显式栈迭代实现，超长依赖链不会触发递归深度限制。
        """
        visited: set[str] = {start}
        on_stack: set[str] = {start}
        path: list[str] = [start]
        stack: list[tuple[str, Iterator[str]]] = [(start, self._prerequisites(start))]

        while stack:
            node_id, pending = stack[-1]
            for dep in pending:
                if dep in on_stack:
                    cycle = path[path.index(dep):] + [dep]
                    logger.debug("[Cycle] Found: %s", " -> ".join(cycle))
                    return cycle
                if dep not in visited:
                    visited.add(dep)
                    on_stack.add(dep)
                    path.append(dep)
                    stack.append((dep, self._prerequisites(dep)))
                    break
            else:
                # 所有前置依赖都已探索完毕，出栈
                stack.pop()
                on_stack.discard(node_id)
                path.pop()

        return None

    def has_cycle(self, start: str) -> bool:
        return self.find_cycle(start) is not None
