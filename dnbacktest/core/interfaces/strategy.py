"""
Strategy simulator interface definition.
"""

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from dnbacktest.core.engine.simulators import SimulationContext, StepResult


class StrategySimulator(Protocol):
    """A pure function advancing portfolio value by one period."""

    def __call__(self, context: "SimulationContext") -> "StepResult":
        """Simulate one period and return the next portfolio state."""
        ...
