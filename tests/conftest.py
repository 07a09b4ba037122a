"""
Shared fixtures: a controllable clock so age-dependent results are stable.
共享 fixture：可控时钟，保证与时间相关的结果稳定可复现。
"""

from __future__ import annotations

import pytest

from resolver import TaskDependencyResolver


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def resolver(clock: FakeClock) -> TaskDependencyResolver:
    return TaskDependencyResolver(clock=clock)
