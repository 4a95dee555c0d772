"""Core business logic modules."""

from codescribe.core.ai import AIEngine
from codescribe.core.config import Config
from codescribe.core.context import ProjectContext
from codescribe.core.prompts import PromptBuilder

__all__ = ["ProjectContext", "PromptBuilder", "AIEngine", "Config"]
