"""
Workflow coordination: the 5-stage orchestrator, the SQLite-backed
advisory store and the recommendation request use case.
"""

from iopulse.coordinator.service import build_previous_recommendation, request_recommendation
from iopulse.coordinator.store import (
    AdvisoryStore,
    NotificationRecord,
    RecommendationRecord,
    StrategyRecord,
)
from iopulse.coordinator.workflow import ProgressSink, WorkflowOrchestrator

__all__ = [
    "AdvisoryStore",
    "NotificationRecord",
    "ProgressSink",
    "RecommendationRecord",
    "StrategyRecord",
    "WorkflowOrchestrator",
    "build_previous_recommendation",
    "request_recommendation",
]
