"""
Model gateway package.

Provides the OpenAI-compatible gateway, an opt-in retry wrapper, the
structured-output extractor and the tool-call loop.
"""

from iopulse.llm.base import LLMGateway, LLMRequest, LLMResponse, ToolCall
from iopulse.llm.extraction import extract_json
from iopulse.llm.gateway import OpenAICompatibleGateway
from iopulse.llm.retry import RetryingGateway
from iopulse.llm.tool_loop import LoopState, ToolLoopResult, run_with_tools

__all__ = [
    "LLMGateway",
    "LLMRequest",
    "LLMResponse",
    "LoopState",
    "OpenAICompatibleGateway",
    "RetryingGateway",
    "ToolCall",
    "ToolLoopResult",
    "extract_json",
    "run_with_tools",
]
