"""
Resolver module - Dependency graph and scheduling engine.
Resolver 模块：依赖图与调度引擎。

Components:
  - graph.py:         GraphStore, tasks and bidirectional edges
  - cycles.py:        CycleDetector, DFS circular dependency check
  - planner.py:       OrderPlanner, topological order and critical path
  - state_machine.py: Task lifecycle state machine
  - lifecycle.py:     LifecycleTracker, status, unblocking, priority
  - events.py:        EventBus, synchronous notifications
  - engine.py:        TaskDependencyResolver, the public facade

模块组成：
  - graph.py:         GraphStore，任务与双向依赖边
  - cycles.py:        CycleDetector，基于 DFS 的循环依赖检测
  - planner.py:       OrderPlanner，拓扑排序与关键路径
  - state_machine.py: 任务生命周期状态机（强制合法状态转移）
  - lifecycle.py:     LifecycleTracker，状态、解锁与优先级评分
  - events.py:        EventBus，同步事件通知
  - engine.py:        TaskDependencyResolver，对外统一入口
"""

from resolver.engine import TaskDependencyResolver    # 调度引擎
from resolver.errors import (
    CyclicDependencyError,
    InvalidTransitionError,
    NotFoundError,
    NotReadyError,
    ResolverError,
    ValidationError,
)
