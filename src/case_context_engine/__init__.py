"""
Case context engine.

Vectorizes case-management records, assembles per-case and per-provider
context, and synthesizes structured recommendations with a generative model.
"""

from case_context_engine.core.config import EngineConfig
from case_context_engine.engine import CaseContextEngine, create_engine

__all__ = ["CaseContextEngine", "EngineConfig", "create_engine"]
