"""Shared test fixtures for the plone-mcp test suite."""

from __future__ import annotations

import itertools
from collections.abc import Callable

import pytest

from plone_mcp.blocks import BlockAssembler, BlockNormalizer, SchemaRegistry, StagingSlot
from plone_mcp.config import PloneConfig


class FakeImageChecker:
    """Image checker that answers from a fixed verdict and records calls."""

    def __init__(self, verdict: bool = True) -> None:
        self.verdict = verdict
        self.calls: list[str] = []

    async def is_image(self, url: str) -> bool:
        self.calls.append(url)
        return self.verdict


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def config() -> PloneConfig:
    """Default test configuration with dummy credentials."""
    return PloneConfig(base_url="https://plone.example.com", username="admin", password="secret")


@pytest.fixture(scope="session")
def registry() -> SchemaRegistry:
    return SchemaRegistry.load()


@pytest.fixture
def image_checker() -> FakeImageChecker:
    return FakeImageChecker()


@pytest.fixture
def normalizer(registry: SchemaRegistry, image_checker: FakeImageChecker) -> BlockNormalizer:
    return BlockNormalizer(registry, image_checker)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def id_factory() -> Callable[[], str]:
    """Deterministic block ids: ``id-1``, ``id-2``, ..."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def assembler(
    registry: SchemaRegistry,
    normalizer: BlockNormalizer,
    clock: FakeClock,
    id_factory: Callable[[], str],
) -> BlockAssembler:
    return BlockAssembler(
        registry,
        normalizer,
        slot=StagingSlot(ttl_seconds=60.0, clock=clock),
        id_factory=id_factory,
    )
