"""
Public exports for the agent package.
"""

from .config import AgentConfig
from .core import Agent, AgentResult

__all__ = ["Agent", "AgentConfig", "AgentResult"]
