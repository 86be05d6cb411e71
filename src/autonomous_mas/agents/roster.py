"""
Default agent roster.

The engine starts from this fixed hierarchy of one orchestrator, three
managers, one engineer and one specialist unless a roster is supplied.
Strategy names the engine does not implement (``data_recovery``,
``model_reload``) are listed for completeness and ignored by the policy.
"""

from typing import Any, Dict, List

from autonomous_mas.agents.agent import Agent, AgentRole, HealingPolicy


DEFAULT_ROSTER: List[Dict[str, Any]] = [
    {
        "agent_id": "orchestrator-001",
        "role": "orchestrator",
        "name": "Master Orchestrator",
        "capabilities": ["task_distribution", "resource_management", "conflict_resolution", "performance_monitoring"],
        "max_retries": 5,
        "strategies": ["restart", "load_balancing"],
        "conflict_resolution_level": 3,
    },
    {
        "agent_id": "dev-manager-001",
        "role": "manager",
        "name": "Development Manager",
        "capabilities": ["code_generation", "testing", "deployment", "code_review"],
        "max_retries": 3,
        "strategies": ["restart", "backup_agent"],
        "conflict_resolution_level": 2,
    },
    {
        "agent_id": "content-manager-001",
        "role": "manager",
        "name": "Content Manager",
        "capabilities": ["content_generation", "media_creation", "seo_optimization", "quality_assessment"],
        "max_retries": 3,
        "strategies": ["restart", "resource_reallocation"],
        "conflict_resolution_level": 2,
    },
    {
        "agent_id": "analytics-manager-001",
        "role": "manager",
        "name": "Analytics Manager",
        "capabilities": ["data_analysis", "reporting", "insights_generation", "predictive_modeling"],
        "max_retries": 3,
        "strategies": ["restart", "data_recovery"],
        "conflict_resolution_level": 2,
    },
    {
        "agent_id": "fullstack-engineer-001",
        "role": "engineer",
        "name": "Full-Stack Engineer",
        "capabilities": ["frontend_dev", "backend_dev", "database_design", "api_development"],
        "max_retries": 2,
        "strategies": ["restart"],
        "conflict_resolution_level": 1,
    },
    {
        "agent_id": "ai-specialist-001",
        "role": "specialist",
        "name": "AI/ML Specialist",
        "capabilities": ["model_training", "prompt_optimization", "ai_integration", "performance_tuning"],
        "max_retries": 2,
        "strategies": ["restart", "model_reload"],
        "conflict_resolution_level": 1,
    },
]


def build_agent(entry: Dict[str, Any]) -> Agent:
    """Create an agent from a roster entry."""
    return Agent(
        agent_id=entry["agent_id"],
        name=entry.get("name", entry["agent_id"]),
        role=AgentRole(entry.get("role", AgentRole.SPECIALIST.value)),
        capabilities=frozenset(entry.get("capabilities", ())),
        policy=HealingPolicy.from_names(
            entry.get("strategies", ["restart"]),
            max_retries=entry.get("max_retries", 3),
            conflict_resolution_level=entry.get("conflict_resolution_level", 1),
        ),
    )


def default_agents() -> List[Agent]:
    """Fresh agents for the default roster."""
    return [build_agent(entry) for entry in DEFAULT_ROSTER]


__all__ = ["DEFAULT_ROSTER", "build_agent", "default_agents"]
