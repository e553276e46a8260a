"""
CLI module - unified command-line interface.

Provides entry points for ingestion, search, context assembly,
recommendations and simulations.
"""

from case_context_engine.cli.commands import (
    build_parser,
    main,
    run_context_cli,
    run_recommend_cli,
    run_search_cli,
    run_simulate_cli,
    run_vectorize_cli,
)

__all__ = [
    "build_parser",
    "main",
    "run_context_cli",
    "run_recommend_cli",
    "run_search_cli",
    "run_simulate_cli",
    "run_vectorize_cli",
]
