"""Shared pytest fixtures."""

import pytest

from actionlang.builder import ActionBuilder
from actionlang.config import EngineConfig
from actionlang.ir import DEFAULT_ID_GENERATOR
from actionlang.runtime.engine import ExecutionEngine


@pytest.fixture(autouse=True)
def fresh_ids():
    """Every test starts numbering nodes from action-1."""
    DEFAULT_ID_GENERATOR.reset()
    yield DEFAULT_ID_GENERATOR


@pytest.fixture
def builder():
    return ActionBuilder()


@pytest.fixture
def engine():
    return ExecutionEngine(EngineConfig(random_seed=7))


@pytest.fixture
def execute(builder, engine):
    """Run statements as a program and return the value of the last one."""

    def run(*statements):
        return engine.execute(builder.tree(*statements))

    return run


@pytest.fixture
def logged(engine):
    """Text of every console/output record, in order."""
    return lambda: [record.text for record in engine.get_output()]
