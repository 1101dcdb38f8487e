from auditready.services.agents.dispatch import run_agent, validate_agent
from auditready.services.agents.extraction import AgentOutput, extract_json, interpret_output
from auditready.services.agents.pipeline import AgentRunResult

__all__ = [
    "AgentOutput",
    "AgentRunResult",
    "extract_json",
    "interpret_output",
    "run_agent",
    "validate_agent",
]
