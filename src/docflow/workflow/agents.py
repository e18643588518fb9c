"""Agent contract and an explicitly constructed agent registry."""

from __future__ import annotations

import importlib
import inspect
from collections.abc import Awaitable, Callable, Mapping
from typing import Protocol, runtime_checkable

from docflow.errors import AgentLoadError
from docflow.workflow.models import AgentInput, AgentOutput, ProjectPhase
from docflow.workflow.phases import PHASE_CONFIG


@runtime_checkable
class PhaseAgent(Protocol):
    """Turns phase context into artifacts.

    Expected failure modes are returned as artifacts carrying
    validation_errors; anything raised is treated as an agent failure.
    """

    name: str
    phase: ProjectPhase

    async def execute(self, agent_input: AgentInput) -> AgentOutput: ...


class FunctionAgent:
    """Adapter binding a coroutine function to an agent name and phase."""

    def __init__(
        self,
        name: str,
        phase: ProjectPhase,
        fn: Callable[[AgentInput], Awaitable[AgentOutput]],
    ) -> None:
        self.name = name
        self.phase = phase
        self._fn = fn

    async def execute(self, agent_input: AgentInput) -> AgentOutput:
        return await self._fn(agent_input)

    def __repr__(self) -> str:
        return f"FunctionAgent(name={self.name!r}, phase={self.phase.value!r})"


class AgentRegistry:
    """Agents keyed by (phase, name); one name may serve several phases."""

    def __init__(self, agents: list[PhaseAgent] | None = None) -> None:
        self._agents: dict[tuple[ProjectPhase, str], PhaseAgent] = {}
        for agent in agents or []:
            self.register(agent)

    def register(self, agent: PhaseAgent) -> None:
        key = (ProjectPhase(agent.phase), agent.name)
        if key in self._agents:
            raise ValueError(f"Agent {agent.name!r} already registered for phase {key[0]}")
        self._agents[key] = agent

    def get(self, phase: ProjectPhase, name: str) -> PhaseAgent | None:
        return self._agents.get((phase, name))

    def for_phase(self, phase: ProjectPhase) -> list[PhaseAgent]:
        return [agent for (p, _), agent in self._agents.items() if p == phase]

    def __len__(self) -> int:
        return len(self._agents)


def _parse_binding(binding: str) -> tuple[ProjectPhase, str]:
    phase_value, sep, name = binding.partition(":")
    if not sep or not name:
        raise AgentLoadError(binding, "expected '<phase>:<agent>'")
    try:
        phase = ProjectPhase(phase_value)
    except ValueError:
        raise AgentLoadError(binding, f"unknown phase {phase_value!r}") from None
    if name not in PHASE_CONFIG[phase].agents:
        bound = ", ".join(PHASE_CONFIG[phase].agents) or "none"
        raise AgentLoadError(binding, f"{name!r} is not bound to {phase} (bound: {bound})")
    return phase, name


def _import_target(binding: str, target: str) -> object:
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise AgentLoadError(binding, f"target {target!r} must look like 'module:callable'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise AgentLoadError(binding, f"cannot import {module_name}: {e}") from e
    try:
        return getattr(module, attr)
    except AttributeError:
        raise AgentLoadError(binding, f"{module_name} has no attribute {attr!r}") from None


def load_agents(bindings: Mapping[str, str]) -> list[PhaseAgent]:
    """Resolve {"<phase>:<agent>": "module:callable"} bindings into agents.

    A coroutine function is wrapped in a FunctionAgent. Any other callable is
    treated as a factory and called with (name, phase); it must return a
    PhaseAgent.
    """
    agents: list[PhaseAgent] = []
    for binding, target in bindings.items():
        phase, name = _parse_binding(binding)
        obj = _import_target(binding, target)
        if inspect.iscoroutinefunction(obj):
            agents.append(FunctionAgent(name, phase, obj))
            continue
        if not callable(obj):
            raise AgentLoadError(binding, f"{target} is not callable")
        agent = obj(name, phase)
        if not isinstance(agent, PhaseAgent):
            raise AgentLoadError(binding, f"{target} did not return a phase agent")
        agents.append(agent)
    return agents
