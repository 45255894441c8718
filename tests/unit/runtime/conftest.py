from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from fakes import FakeGenerator, step_for
from miniapp_factory.providers import FallbackExecutor, FallbackStep


async def _no_sleep(delay: float) -> None:
    await asyncio.sleep(0)


@pytest.fixture
def executor() -> FallbackExecutor:
    return FallbackExecutor(base_delay=0.0, sleep=_no_sleep)


@pytest.fixture
def make_chain() -> Callable[..., tuple[FallbackStep, ...]]:
    def _make(*pairs: tuple[str, FakeGenerator] | tuple[str, FakeGenerator, int]):
        return tuple(step_for(*pair) for pair in pairs)

    return _make
