"""Castor: async client for a tool-augmented LLM chat gateway.

Public API:
    - Client: Entry point (chat sessions, tasks, hooks)
    - ChatSession: Streaming, step-by-step agent loop, automatic run()
    - ToolDefinition / ToolExecutionResult: Tool use
    - ParameterBuilder / ParameterKey: Generation parameters
    - Config: Configuration dataclass
"""

from __future__ import annotations

import logging

from castor._http import AGENT_VERSION as __version__
from castor.agent import (
    MAX_ITERATIONS_FALLBACK,
    AgentLoop,
    AgentState,
    AgentTextResponse,
    AgentToolRequest,
    run_agent,
)
from castor.chat import ChatSession
from castor.client import Client
from castor.config import Config
from castor.errors import (
    APIError,
    APIStatusError,
    AuthenticationError,
    CastorError,
    ConfigurationError,
    InvalidStateError,
    RateLimitError,
    StreamProtocolError,
    ToolExecutionError,
    TurnTimeoutError,
    ValidationError,
)
from castor.hooks import Hooks
from castor.messages import (
    ChatMessage,
    assistant_text_message,
    assistant_tool_call_message,
    media_message,
    system_message,
    tool_result_message,
    user_message,
)
from castor.parameters import ParameterBuilder
from castor.profiles import ParameterKey, known_profiles, supported_parameters
from castor.streaming import QuotaInfo, StreamEvent, TaskEvent, TextDelta, ToolCallsReady
from castor.tasks import TaskAPI, TaskResult
from castor.tools import ToolCall, ToolDefinition, ToolExecutionResult, execute_tools

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("castor").addHandler(logging.NullHandler())

__all__ = [
    "MAX_ITERATIONS_FALLBACK",
    "APIError",
    "APIStatusError",
    "AgentLoop",
    "AgentState",
    "AgentTextResponse",
    "AgentToolRequest",
    "AuthenticationError",
    "CastorError",
    "ChatMessage",
    "ChatSession",
    "Client",
    "Config",
    "ConfigurationError",
    "Hooks",
    "InvalidStateError",
    "ParameterBuilder",
    "ParameterKey",
    "QuotaInfo",
    "RateLimitError",
    "StreamEvent",
    "StreamProtocolError",
    "TaskAPI",
    "TaskEvent",
    "TaskResult",
    "TextDelta",
    "ToolCall",
    "ToolCallsReady",
    "ToolDefinition",
    "ToolExecutionError",
    "ToolExecutionResult",
    "TurnTimeoutError",
    "ValidationError",
    "__version__",
    "assistant_text_message",
    "assistant_tool_call_message",
    "execute_tools",
    "known_profiles",
    "media_message",
    "run_agent",
    "supported_parameters",
    "system_message",
    "tool_result_message",
    "user_message",
]
