"""Reasoning engine and provider interface."""

from .engine import ConfirmationHandler, ReasoningEngine, calculate_confidence
from .models import ReasoningContext, ReasoningResult, ReasoningStep, StepType, StopReason
from .prompt import build_system_prompt, format_preferences
from .provider import (
    CapabilityProvider,
    GroqProvider,
    ProviderRequest,
    ProviderResponse,
    ToolCall,
    parse_tool_arguments,
)
from .stream import ReasoningStream

__all__ = [
    "CapabilityProvider",
    "ConfirmationHandler",
    "GroqProvider",
    "ProviderRequest",
    "ProviderResponse",
    "ReasoningContext",
    "ReasoningEngine",
    "ReasoningResult",
    "ReasoningStep",
    "ReasoningStream",
    "StepType",
    "StopReason",
    "ToolCall",
    "build_system_prompt",
    "calculate_confidence",
    "format_preferences",
    "parse_tool_arguments",
]
