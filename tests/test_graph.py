"""
GraphStore 与 CycleDetector 测试，覆盖：
  1. 双向边维护 (dependencies / dependents 互为逆关系)
  2. 占位节点的创建与合并 (Placeholder upsert)
  3. 输入校验 (ValidationError)
  4. 回滚 (remove 精确恢复注册前的图)
  5. 循环依赖检测 (DFS，每次调用状态独立)

运行方式:
    pytest tests/test_graph.py -v
"""

from __future__ import annotations

import pytest

from resolver.cycles import CycleDetector
from resolver.errors import ValidationError
from resolver.graph import GraphStore
from schema import PriorityClass


def _assert_inverse(graph: GraphStore) -> None:
    """dependents 必须恰好是 dependencies 的逆关系."""
    for node in graph:
        for dep in node.dependencies:
            assert node.id in graph.get(dep).dependents, f"{node.id} 应出现在 {dep}.dependents 中"
        for dependent in node.dependents:
            assert node.id in graph.get(dependent).dependencies, f"{dependent} 应依赖 {node.id}"


def _shape(graph: GraphStore) -> list[tuple]:
    """图的完整形态（含键顺序），用于比较回滚前后是否一致."""
    return [
        (n.id, tuple(n.dependencies), tuple(n.dependents), n.placeholder)
        for n in graph
    ]


# ======================================================================
# Test 1: 图结构维护
# ======================================================================


class TestGraphStore:

    def test_register_records_both_directions(self):
        graph = GraphStore()
        graph.register("A")
        graph.register("B", ["A"])
        graph.register("C", ["A", "B"])

        assert graph.get("A").dependents == ["B", "C"]
        assert graph.get("C").dependencies == ["A", "B"]
        assert graph.edge_count() == 3
        _assert_inverse(graph)

    def test_duplicate_prerequisites_collapse(self):
        graph = GraphStore()
        graph.register("A")
        node = graph.register("B", ["A", "A", "A"])

        assert node.dependencies == ["A"]
        assert graph.get("A").dependents == ["B"]

    def test_unknown_prerequisite_creates_placeholder(self):
        """依赖尚未注册的任务时，应创建占位节点记录边."""
        graph = GraphStore()
        graph.register("API", ["DB"])

        db = graph.get("DB")
        assert db is not None and db.placeholder, "DB 应是占位节点"
        assert db.dependents == ["API"]
        assert [n.id for n in graph.tasks()] == ["API"], "tasks() 不应包含占位节点"
        assert len(graph) == 2

    def test_placeholder_merge_keeps_dependents(self):
        """注册占位节点的 ID 时合并：保留下游边，替换依赖与元数据，清除占位标记."""
        graph = GraphStore()
        graph.register("API", ["DB"])
        graph.register("WEB", ["DB"])
        graph.register("SETUP")
        node = graph.register("DB", ["SETUP"], {"priority": "high", "title": "Database"})

        assert not node.placeholder
        assert node.dependents == ["API", "WEB"], "合并后必须保留已累积的下游边"
        assert node.dependencies == ["SETUP"]
        assert node.metadata.priority == PriorityClass.HIGH
        assert node.metadata.title == "Database"
        _assert_inverse(graph)

    def test_reregistration_drops_old_edges(self):
        """重复注册真实任务时，不再声明的前置任务应断开反向边，孤立的占位节点被丢弃."""
        graph = GraphStore()
        graph.register("A")
        graph.register("T", ["A", "GHOST"])
        graph.register("T", ["A"])

        assert graph.get("GHOST") is None, "没有下游的占位节点应被丢弃"
        assert graph.get("A").dependents == ["T"]
        _assert_inverse(graph)

    def test_metadata_extra_keys_preserved(self):
        graph = GraphStore()
        node = graph.register("A", [], {"title": "Alpha", "owner": "infra"})
        dumped = node.metadata.model_dump(exclude_none=True)
        assert dumped == {"title": "Alpha", "owner": "infra"}

    @pytest.mark.parametrize("bad_id", ["", "   ", None, 42])
    def test_invalid_task_id_rejected(self, bad_id):
        graph = GraphStore()
        with pytest.raises(ValidationError):
            graph.register(bad_id)
        assert len(graph) == 0

    def test_invalid_prerequisite_rejected_without_mutation(self):
        graph = GraphStore()
        graph.register("A")
        before = _shape(graph)

        with pytest.raises(ValidationError):
            graph.register("B", ["A", ""])
        with pytest.raises(ValidationError):
            graph.register("B", "A")  # 字符串不是 ID 列表

        assert _shape(graph) == before

    def test_invalid_priority_class_rejected(self):
        graph = GraphStore()
        with pytest.raises(ValidationError, match="Invalid metadata"):
            graph.register("A", [], {"priority": "urgent"})
        assert len(graph) == 0


# ======================================================================
# Test 2: 回滚
# ======================================================================


class TestRollback:

    def test_remove_undoes_fresh_registration(self):
        graph = GraphStore()
        graph.register("A")
        graph.commit()
        before = _shape(graph)

        graph.register("B", ["A", "NEW"])
        graph.remove("B")

        assert _shape(graph) == before, "回滚后图应与注册前完全一致"

    def test_remove_restores_merged_placeholder(self):
        """占位节点被合并后回滚：占位节点及其下游边应原样恢复."""
        graph = GraphStore()
        graph.register("API2", ["SETUP2"])
        graph.register("OTHER")
        graph.commit()
        before = _shape(graph)
        edges_before = graph.edge_count()

        graph.register("SETUP2", ["API2"])
        graph.remove("SETUP2")

        assert _shape(graph) == before
        assert graph.edge_count() == edges_before
        assert graph.get("SETUP2").placeholder
        assert graph.get("SETUP2").dependents == ["API2"]

    def test_remove_restores_overwritten_task(self):
        graph = GraphStore()
        graph.register("A")
        graph.register("B", ["A"])
        graph.commit()
        before = _shape(graph)

        graph.register("A", ["B"])
        graph.remove("A")

        assert _shape(graph) == before

    def test_remove_without_pending_registration(self):
        graph = GraphStore()
        graph.register("A")
        graph.register("B", ["A", "GHOST"])
        graph.commit()

        graph.remove("B")

        assert graph.get("B") is None
        assert graph.get("GHOST") is None, "仅由 B 引入的占位节点应一并移除"
        assert graph.get("A").dependents == []

    def test_remove_unknown_is_noop(self):
        graph = GraphStore()
        graph.register("A")
        graph.commit()
        graph.remove("missing")
        assert len(graph) == 1


# ======================================================================
# Test 3: 循环依赖检测
# ======================================================================


class TestCycleDetector:

    def test_self_dependency_is_a_cycle(self):
        graph = GraphStore()
        graph.register("A", ["A"])
        assert CycleDetector(graph).find_cycle("A") == ["A", "A"]

    def test_three_task_cycle_reports_path(self):
        graph = GraphStore()
        graph.register("A", ["B"])
        graph.register("B", ["C"])
        graph.register("C", ["A"])

        assert CycleDetector(graph).find_cycle("C") == ["C", "A", "B", "C"]

    def test_diamond_has_no_cycle(self):
        """菱形依赖（共享前置任务）不是环."""
        graph = GraphStore()
        graph.register("A")
        graph.register("B", ["A"])
        graph.register("C", ["A"])
        graph.register("D", ["B", "C"])

        detector = CycleDetector(graph)
        assert not detector.has_cycle("D")
        assert not detector.has_cycle("A")

    def test_state_does_not_leak_between_calls(self):
        """每次调用必须使用全新的 visited/on_stack 集合."""
        graph = GraphStore()
        graph.register("A")
        graph.register("B", ["A"])
        detector = CycleDetector(graph)
        assert not detector.has_cycle("B")

        graph.register("A", ["B"])
        assert detector.has_cycle("A"), "图变化后必须重新检测出环"
        assert detector.has_cycle("B")

    def test_placeholder_prerequisites_end_traversal(self):
        graph = GraphStore()
        graph.register("A", ["MISSING"])
        assert not CycleDetector(graph).has_cycle("A")

    def test_deep_chain_does_not_hit_recursion_limit(self):
        graph = GraphStore()
        graph.register("T0")
        for i in range(1, 5000):
            graph.register(f"T{i}", [f"T{i - 1}"])

        detector = CycleDetector(graph)
        assert not detector.has_cycle("T4999")

        graph.register("T0", ["T4999"])
        assert detector.has_cycle("T0")
