"""
All database models. Imported here so Base.metadata sees them for create_all().
"""

from .base import RecordBase
from .user import User
from .scenario import MortgageScenario
from .chat import Chat
from .llm_call import LLMRequest, LLMResponse
from .message import Message
from .analysis import Analysis

__all__ = [
    "RecordBase",
    "User",
    "MortgageScenario",
    "Chat",
    "LLMRequest", "LLMResponse",
    "Message",
    "Analysis",
]
