"""Pipeline agents, one per stage."""

from iopulse.agents.base import Agent, AgentContext, StageResult
from iopulse.agents.committee import CommitteeAgent, CommitteeInput
from iopulse.agents.profile import ProfileAgent
from iopulse.agents.qualitative import QualitativeAgent, QualitativeInput
from iopulse.agents.quantitative import QuantInput, QuantitativeAgent
from iopulse.agents.screener import ScreenerAgent

__all__ = [
    "Agent",
    "AgentContext",
    "CommitteeAgent",
    "CommitteeInput",
    "ProfileAgent",
    "QualitativeAgent",
    "QualitativeInput",
    "QuantInput",
    "QuantitativeAgent",
    "ScreenerAgent",
    "StageResult",
]
