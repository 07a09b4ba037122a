"""
Task Dependency Resolver - Command-line demo.
任务依赖解析器：命令行演示入口。

Registers a task list (a JSON file, or the built-in phase 1 plan), then shows
the execution order, the priority-ranked ready tasks, the dependency tree and
the statistics with a rich console UI. With --simulate it keeps starting and
completing the top-ranked task and prints every notification on the way.
注册任务列表（JSON 文件或内置的 phase 1 计划），然后用 Rich 控制台展示
执行顺序、按优先级排序的就绪任务、依赖树和统计信息。
加上 --simulate 时会不断启动并完成排名第一的任务，并打印途中的每个事件。

Usage / 用法:
    python main.py [tasks.json] [--simulate] [-v]
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

import config
from resolver import ResolverError, TaskDependencyResolver
from schema import TaskEvent

console = Console()

# Status -> Rich style mapping
# 任务状态 -> Rich 样式映射
_STATUS_STYLES = {
    "blocked": "dim",
    "ready": "yellow",
    "in_progress": "bold yellow",
    "completed": "green",
    "failed": "red",
}

# Built-in demo plan / 内置演示计划
PHASE1_TASKS: list[dict[str, Any]] = [
    {"id": "SETUP_ENV", "dependencies": [], "priority": "critical"},
    {"id": "REDIS_CLUSTER", "dependencies": ["SETUP_ENV"], "priority": "critical"},
    {"id": "CIRCUIT_BREAKERS", "dependencies": ["SETUP_ENV"], "priority": "critical"},
    {"id": "ERROR_RECOVERY", "dependencies": ["CIRCUIT_BREAKERS"], "priority": "high"},
    {"id": "MONITORING", "dependencies": ["REDIS_CLUSTER", "CIRCUIT_BREAKERS"], "priority": "medium"},
    {"id": "TESTING", "dependencies": ["ERROR_RECOVERY", "MONITORING"], "priority": "high"},
    {"id": "DOCUMENTATION", "dependencies": ["TESTING"], "priority": "low"},
]


# ======================================================================
# Task loading
# 任务加载
# ======================================================================

def load_tasks(path: str) -> list[dict[str, Any]]:
    """
    Read a JSON array of {id, dependencies, priority, title} objects.
    读取由 {id, dependencies, priority, title} 对象组成的 JSON 数组。
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON array of tasks")
    return data


def register_all(resolver: TaskDependencyResolver, tasks: list[dict[str, Any]]) -> list[str]:
    """
    Register tasks in file order; rejected ones are reported and skipped.
    按文件顺序注册任务；被拒绝的任务会打印原因并跳过。
    Returns the IDs that were rejected (a non-object entry is reported as itself).
    """
    rejected = []
    for entry in tasks:
        if not isinstance(entry, dict):
            console.print(f"  [red]x[/red] {escape(repr(entry))}: expected a task object")
            rejected.append(str(entry))
            continue
        task_id = entry.get("id", "")
        metadata = {k: v for k, v in entry.items() if k not in ("id", "dependencies")}
        metadata.setdefault("title", str(task_id).replace("_", " ").title())
        try:
            resolver.register(task_id, entry.get("dependencies", []), metadata)
        except ResolverError as exc:
            console.print(f"  [red]x[/red] {task_id}: {exc}")
            rejected.append(task_id)
    return rejected


# ======================================================================
# Rendering
# 渲染
# ======================================================================

def _styled(status: str) -> str:
    style = _STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def _build_dependency_tree(resolver: TaskDependencyResolver) -> Tree:
    """
    Build a Rich Tree from root tasks down through their dependents.
    从根任务出发，沿下游依赖构建 Rich Tree。
    A task with several prerequisites appears under each of them.
    有多个前置任务的任务会出现在每个前置任务下。
    """
    snapshot = resolver.graph_snapshot()
    nodes = {n.id: n for n in snapshot.nodes}
    children: dict[str, list[str]] = {n.id: [] for n in snapshot.nodes}
    has_parent: set[str] = set()
    for edge in snapshot.edges:
        children[edge.source].append(edge.target)
        has_parent.add(edge.target)

    tree = Tree("[bold]Dependency Graph[/bold]")

    def add(branch: Tree, task_id: str) -> None:
        node = nodes[task_id]
        label = f"[cyan]{task_id}[/cyan]: {node.label} ({_styled(node.status.value)})"
        if node.priority is not None:
            label += f" [dim]{node.priority.value}[/dim]"
        sub = branch.add(label)
        for child in children[task_id]:
            add(sub, child)

    for task_id in nodes:
        if task_id not in has_parent:
            add(tree, task_id)
    return tree


def render_overview(resolver: TaskDependencyResolver) -> None:
    order = Table(title="Execution Order", border_style="cyan")
    order.add_column("#", style="cyan", width=4)
    order.add_column("Task", style="white")
    order.add_column("Status", width=12)
    for i, task_id in enumerate(resolver.execution_order, 1):
        info = resolver.task_info(task_id)
        order.add_row(str(i), task_id, _styled(info.status.value))
    console.print(order)

    ready = Table(title="Available Tasks", border_style="yellow")
    ready.add_column("Task", style="white")
    ready.add_column("Score", style="yellow", justify="right")
    ready.add_column("Class", style="dim")
    for task in resolver.available_tasks():
        ready.add_row(task.id, f"{task.priority:.1f}", task.metadata.get("priority", "-"))
    console.print(ready)

    console.print(Panel(_build_dependency_tree(resolver), border_style="magenta"))
    render_statistics(resolver)


def render_statistics(resolver: TaskDependencyResolver) -> None:
    stats = resolver.statistics()
    console.print(Panel(
        f"Total: {stats.total}  |  Ready: {stats.ready}  |  Blocked: {stats.blocked}  |  "
        f"In progress: {stats.in_progress}  |  Completed: {stats.completed}  |  Failed: {stats.failed}\n"
        f"Average duration: {stats.avg_duration:.3f}s\n"
        f"Critical path ({len(stats.critical_path)}): {' -> '.join(stats.critical_path) or '-'}",
        title="[bold]Statistics[/bold]",
        border_style="blue",
    ))


# ======================================================================
# Event Handler - Pretty-prints resolver notifications
# 事件处理器：美化打印解析器通知
# ======================================================================

def on_event(event: TaskEvent) -> None:
    if event.kind == "task_registered":
        deps = ", ".join(event.dependencies) or "-"
        console.print(f"  [green]+[/green] Registered [cyan]{event.task_id}[/cyan] [dim](after: {deps})[/dim]")

    elif event.kind == "task_started":
        console.print(f"    [yellow]>> {event.task_id}[/yellow] started")

    elif event.kind == "task_completed":
        if event.success:
            console.print(f"    [green]<< {event.task_id} completed[/green] [dim]({event.duration:.3f}s)[/dim]")
        else:
            console.print(f"    [red]<< {event.task_id} FAILED[/red]")

    elif event.kind == "task_unblocked":
        console.print(f"    [magenta]** {event.task_id} unblocked[/magenta]")

    elif event.kind == "all_tasks_complete":
        style = "red" if event.has_failures else "green"
        verdict = "with failures" if event.has_failures else "successfully"
        console.print(Panel(f"All tasks finished {verdict}.", border_style=style))


# ======================================================================
# Simulation
# 模拟执行
# ======================================================================

def simulate(resolver: TaskDependencyResolver) -> int:
    """
    Start and complete the top-ranked task until nothing is runnable.
    不断启动并完成排名第一的任务，直到没有可执行任务。
    Returns the number of tasks run.
    """
    runs = 0
    available = resolver.available_tasks()
    while available:
        top = available[0]
        resolver.start(top.id)
        available = resolver.complete(top.id, success=True, result={"ran_at_step": runs + 1})
        runs += 1
    logging.getLogger(__name__).info("Simulation finished after %d tasks. %s", runs, resolver.summary())
    return runs


# ======================================================================
# Main
# 主函数
# ======================================================================

def setup_logging(verbose: bool = False) -> None:
    """
    Configure logging with rich handler.
    使用 Rich 处理器配置日志系统。verbose=True 时启用 DEBUG 级别。
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
    )


def main() -> None:
    """
    程序入口：解析命令行参数，决定运行模式。
    - 有位置参数：从 JSON 文件加载任务
    - --simulate：模拟执行整个计划
    - -v / --verbose：启用调试日志
    """
    verbose = "--verbose" in sys.argv or "-v" in sys.argv
    run_simulation = "--simulate" in sys.argv or config.DEMO_SIMULATE
    setup_logging(verbose)

    args = [a for a in sys.argv[1:] if not a.startswith("-")]
    try:
        tasks = load_tasks(args[0]) if args else PHASE1_TASKS
    except (OSError, ValueError) as exc:
        console.print(f"[red]Error: cannot load tasks: {exc}[/red]")
        sys.exit(1)

    resolver = TaskDependencyResolver()
    resolver.subscribe_all(on_event)

    console.print(Panel("[bold]Task Dependency Resolver[/bold]", border_style="blue"))
    register_all(resolver, tasks)
    console.print()
    render_overview(resolver)

    if run_simulation:
        console.print("\n[bold cyan]>>> Simulating execution[/bold cyan]")
        simulate(resolver)
        render_statistics(resolver)


if __name__ == "__main__":
    main()
