"""Risk classification, confirmation gating and the agent action log."""

from .action_log import ActionLog, ActionStats, AgentAction, AuditEntry
from .classifier import (
    TOOL_CLASSIFICATIONS,
    ActionCategory,
    RiskClassifier,
    RiskLevel,
    ToolClassification,
)
from .gate import ActionContext, ConfirmationDecision, ConfirmationGate

__all__ = [
    "TOOL_CLASSIFICATIONS",
    "ActionCategory",
    "ActionContext",
    "ActionLog",
    "ActionStats",
    "AgentAction",
    "AuditEntry",
    "ConfirmationDecision",
    "ConfirmationGate",
    "RiskClassifier",
    "RiskLevel",
    "ToolClassification",
]
