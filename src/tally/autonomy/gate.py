"""Confirmation gate deciding which actions must pause for human approval."""

from dataclasses import dataclass
from typing import Any

from .classifier import ActionCategory, RiskClassifier, RiskLevel

VALUE_KEYS = ("amount", "total", "total_value")


@dataclass(frozen=True)
class ActionContext:
    """Runtime facts about an action that the static table cannot know."""

    batch_size: int | None = None
    total_value: float | None = None

    @classmethod
    def from_arguments(cls, args: dict[str, Any]) -> "ActionContext":
        """Derive context from tool arguments.

        The batch size is the length of the longest list argument, the total
        value is the sum of numeric amount/total/total_value arguments.
        """
        list_sizes = [len(v) for v in args.values() if isinstance(v, list)]
        values = [
            float(args[key])
            for key in VALUE_KEYS
            if isinstance(args.get(key), (int, float)) and not isinstance(args.get(key), bool)
        ]
        return cls(
            batch_size=max(list_sizes) if list_sizes else None,
            total_value=sum(values) if values else None,
        )


@dataclass(frozen=True)
class ConfirmationDecision:
    """Whether an action needs confirmation, and why."""

    required: bool
    reason: str | None = None


class ConfirmationGate:
    """Policy over tool classification and runtime context.

    Rules are evaluated in order and the first match wins:
    critical risk, high-risk external call, large batch, large value,
    tool flagged for review.
    """

    def __init__(
        self,
        classifier: RiskClassifier,
        batch_threshold: int = 10,
        value_threshold: float = 10000.0,
    ) -> None:
        self.classifier = classifier
        self.batch_threshold = batch_threshold
        self.value_threshold = value_threshold

    def requires_confirmation(
        self,
        tool_name: str,
        args: dict[str, Any],
        context: ActionContext | None = None,
    ) -> ConfirmationDecision:
        """Decide whether a tool call needs user confirmation before running.

        Args:
            tool_name: Tool about to be called.
            args: Its arguments.
            context: Batch size and monetary value, if known.

        Returns:
            ConfirmationDecision with a human-readable reason when required.
        """
        classification = self.classifier.classify(tool_name)
        context = context or ActionContext()

        if classification.risk_level is RiskLevel.CRITICAL:
            return ConfirmationDecision(
                True, f"{classification.description} is a critical operation"
            )

        if (
            classification.risk_level is RiskLevel.HIGH
            and classification.category is ActionCategory.EXTERNAL
        ):
            return ConfirmationDecision(
                True, f"{classification.description} will interact with external systems"
            )

        if context.batch_size is not None and context.batch_size > self.batch_threshold:
            return ConfirmationDecision(True, f"This will affect {context.batch_size} items")

        if context.total_value is not None and context.total_value > self.value_threshold:
            return ConfirmationDecision(True, f"This involves {context.total_value:,.2f}")

        if classification.requires_review:
            return ConfirmationDecision(True, f"{classification.description} requires review")

        return ConfirmationDecision(False)
