"""
OrderPlanner - Execution order and critical path over the task graph.
OrderPlanner：基于任务图计算执行顺序与关键路径。

Key operations:
  - topological_sort(): Kahn's algorithm, recomputed on every registration
  - critical_path():    longest prerequisite chain, recomputed per query

核心操作：
  - topological_sort(): Kahn 算法，每次注册后从头重新计算
  - critical_path():    最长前置依赖链，每次查询时重新计算

Placeholder nodes never appear in either result.
占位节点不会出现在任何结果中。
"""

from __future__ import annotations

import logging
from collections import deque

from resolver.graph import GraphStore

logger = logging.getLogger(__name__)


class OrderPlanner:
    """
    Computes the advisory execution order and the critical path.
    计算建议执行顺序与关键路径。
    """

    def __init__(self, graph: GraphStore):
        self._graph = graph
        self._order: list[str] = []  # 最近一次计算出的拓扑序

    @property
    def order(self) -> list[str]:
        return list(self._order)

    def positions(self) -> dict[str, int]:
        """Task ID -> index in the last computed order. 任务 ID -> 在最近拓扑序中的位置。"""
        return {tid: i for i, tid in enumerate(self._order)}

    def _is_real(self, task_id: str) -> bool:
        node = self._graph.get(task_id)
        return node is not None and not node.placeholder

    # ------------------------------------------------------------------
    # Topological order
    # 拓扑排序
    # ------------------------------------------------------------------

    def topological_sort(self) -> list[str]:
        """
        Kahn's algorithm: returns task IDs in a valid execution order.
        Kahn 算法：返回任务 ID 的合法拓扑执行顺序。

        In-degree only counts registered prerequisites, so a task waiting on
        a placeholder still gets a position. Ties are broken by discovery
        order (FIFO), not by priority.
        入度只统计已注册的前置任务，因此依赖占位节点的任务也会出现在顺序中。
        同时就绪的任务按发现顺序（FIFO）排列，而非按优先级。
        """
        in_degree: dict[str, int] = {}
        for node in self._graph.tasks():
            in_degree[node.id] = sum(1 for d in node.dependencies if self._is_real(d))

        queue = deque(tid for tid, deg in in_degree.items() if deg == 0)
        result: list[str] = []

        while queue:
            tid = queue.popleft()
            result.append(tid)
            for dependent in self._graph.get(tid).dependents:
                if dependent not in in_degree:
                    continue
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(result) != len(in_degree):
            logger.error(
                "[Planner] Invariant violated: order covers %d of %d tasks",
                len(result), len(in_degree),
            )
        self._order = result
        return list(result)

    # ------------------------------------------------------------------
    # Critical path
    # 关键路径
    # ------------------------------------------------------------------

    def critical_path(self) -> list[str]:
        """
        Longest chain of prerequisites (counted in tasks) in the graph.
        图中最长的前置依赖链（按任务数计）。

        A task's chain length is 1 + the longest chain among its
        prerequisites; placeholders count as 0. Uses an explicit post-order
        stack and a memo table that lives for this call only.
        任务的链长 = 1 + 其前置任务中最长的链长；占位节点计为 0。
        使用显式后序遍历栈和仅在本次调用中有效的备忘表。
        """
        memo: dict[str, tuple[int, list[str]]] = {}

        for root in self._graph.tasks():
            stack: list[tuple[str, bool]] = [(root.id, False)]
            while stack:
                tid, expanded = stack.pop()
                if tid in memo:
                    continue
                node = self._graph.get(tid)
                if node is None or node.placeholder:
                    memo[tid] = (0, [])
                    continue
                if not expanded:
                    stack.append((tid, True))
                    for dep in reversed(node.dependencies):
                        if dep not in memo:
                            stack.append((dep, False))
                    continue

                best_len, best_path = 0, []
                for dep in node.dependencies:
                    length, path = memo[dep]
                    if length > best_len:  # 严格大于：并列时保留先遍历到的
                        best_len, best_path = length, path
                memo[tid] = (best_len + 1, best_path + [tid])

        critical: list[str] = []
        for node in self._graph.tasks():
            length, path = memo[node.id]
            if length > len(critical):
                critical = path
        return list(critical)
