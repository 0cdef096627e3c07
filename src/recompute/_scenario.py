"""Scenarios: recorded sequences of frames and events replayed against an executor."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

if TYPE_CHECKING:
    from ._eval_engine import CommitResult
    from ._executor import Executor

logger = logging.getLogger(__name__)


class EventCall(BaseModel):
    """An event to apply to one computer."""

    model_config = ConfigDict(extra="forbid")

    computer: str
    name: str
    payload: Any = None


class ScenarioStep(BaseModel):
    """One step of a scenario: either a frame of input assignments or an event.

    ``set`` maps computer name to a table of input name to value; all of it
    is committed as a single frame.
    """

    model_config = ConfigDict(extra="forbid")

    set: dict[str, dict[str, Any]] | None = None
    event: EventCall | None = None
    label: str | None = None

    @model_validator(mode="after")
    def _exactly_one_action(self) -> Self:
        if (self.set is None) == (self.event is None):
            msg = "A scenario step needs exactly one of 'set' or 'event'."
            raise ValueError(msg)
        return self

    def describe(self) -> str:
        """Short human readable description of the step."""
        if self.label:
            return self.label
        if self.event is not None:
            return f"event {self.event.computer}.{self.event.name}"
        names = [f"{computer}.{name}" for computer, inputs in (self.set or {}).items() for name in inputs]
        return "set " + ", ".join(names)


class Scenario(BaseModel):
    """A sequence of steps."""

    model_config = ConfigDict(extra="forbid")

    steps: list[ScenarioStep] = Field(default_factory=list)


@dataclass(frozen=True, slots=True)
class StepOutcome:
    """Result of replaying one scenario step."""

    step: ScenarioStep
    result: CommitResult


def apply_step(executor: Executor, step: ScenarioStep) -> CommitResult:
    """Apply one scenario step to an initialized executor."""
    if step.event is not None:
        return executor.apply_event(step.event.computer, step.event.name, step.event.payload)

    executor.start_frame()
    try:
        for computer, inputs in (step.set or {}).items():
            for name, value in inputs.items():
                executor.set_input(computer, name, value)
    except BaseException:
        executor.discard_frame()
        raise
    return executor.commit_frame()


def run_scenario(executor: Executor, scenario: Scenario) -> list[StepOutcome]:
    """Replay every step of a scenario in order.

    The executor must be initialized. Usage errors stop the replay; compute
    errors are reported in each step's result.
    """
    outcomes: list[StepOutcome] = []
    for index, step in enumerate(scenario.steps):
        logger.debug("Step %d: %s", index, step.describe())
        outcomes.append(StepOutcome(step=step, result=apply_step(executor, step)))
    return outcomes
