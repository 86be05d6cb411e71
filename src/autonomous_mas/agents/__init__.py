"""
Agent model and registry.

This module provides the agent record, its status state machine, the
registry that owns every queue and in-flight slot, and the default roster.
"""

from autonomous_mas.agents.agent import (
    ASSIGNABLE_STATES,
    Agent,
    AgentPerformance,
    AgentRole,
    AgentSnapshot,
    AgentStatus,
    HealingPolicy,
)
from autonomous_mas.agents.registry import AgentRegistry
from autonomous_mas.agents.roster import DEFAULT_ROSTER, build_agent, default_agents

__all__ = [
    "ASSIGNABLE_STATES",
    "Agent",
    "AgentPerformance",
    "AgentRole",
    "AgentSnapshot",
    "AgentStatus",
    "HealingPolicy",
    "AgentRegistry",
    "DEFAULT_ROSTER",
    "build_agent",
    "default_agents",
]
