# src/pipeline/registry.py — v2
"""Agent registry: dynamic loading and lookup of pipeline agents.

Loads agent classes from AGENT_REGISTRY, validates that every declared
dependency names a registered agent, and exposes the dependency map the
plan builder works from.
"""

from __future__ import annotations

import importlib
import logging

from manuscript_pipeline.config.agents import AGENT_REGISTRY
from manuscript_pipeline.pipeline.plugin_kit.base_agent import BaseAgent

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """Raised when agent loading or validation fails."""


class AgentRegistry:
    """Registry of all available pipeline agents, keyed by artifact kind."""

    def __init__(self) -> None:
        self._agents: dict[str, BaseAgent] = {}

    @property
    def agents(self) -> dict[str, BaseAgent]:
        return dict(self._agents)

    @property
    def agent_names(self) -> list[str]:
        return sorted(self._agents.keys())

    def load_all(self, class_paths: list[str] | None = None) -> AgentRegistry:
        """Import and register every agent class path.

        Raises:
            RegistryError: A class path cannot be imported or the loaded
                set has an unsatisfied dependency.
        """
        for class_path in class_paths or AGENT_REGISTRY:
            agent = _import_agent(class_path)
            self.register(agent)
            logger.debug("Loaded agent: %s v%s", agent.name, agent.version)

        errors = self.validate_dependencies()
        if errors:
            raise RegistryError("; ".join(errors))
        logger.info("Registry loaded %d agents", len(self._agents))
        return self

    def register(self, agent: BaseAgent) -> None:
        """Manually register an agent instance."""
        if agent.name in self._agents:
            logger.warning("Overwriting existing agent: %s", agent.name)
        self._agents[agent.name] = agent

    def get(self, name: str) -> BaseAgent | None:
        return self._agents.get(name)

    def get_or_raise(self, name: str) -> BaseAgent:
        agent = self._agents.get(name)
        if agent is None:
            raise RegistryError(f"Agent '{name}' not found in registry")
        return agent

    def validate_dependencies(self) -> list[str]:
        """Return one message per dependency that names no registered agent."""
        errors: list[str] = []
        for name, agent in self._agents.items():
            for dep in agent.dependencies:
                if dep not in self._agents:
                    errors.append(
                        f"Agent '{name}' depends on '{dep}' which is not registered"
                    )
        return errors

    def get_dependency_map(self) -> dict[str, list[str]]:
        """Return agent_name -> list of dependency names."""
        return {
            name: list(agent.dependencies)
            for name, agent in self._agents.items()
        }


def _import_agent(class_path: str) -> BaseAgent:
    """Import and instantiate an agent from a dotted class path."""
    parts = class_path.rsplit(".", 1)
    if len(parts) != 2:
        raise RegistryError(f"Invalid class path: {class_path}")
    module_path, class_name = parts

    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise RegistryError(f"Cannot import module {module_path}: {exc}") from exc

    cls = getattr(module, class_name, None)
    if cls is None:
        raise RegistryError(f"Class {class_name} not found in {module_path}")

    if not isinstance(cls, type) or not issubclass(cls, BaseAgent):
        raise RegistryError(f"{class_path} is not a BaseAgent subclass")

    return cls()
