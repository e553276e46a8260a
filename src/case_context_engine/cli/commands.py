"""
CLI commands - thin wrappers around the engine.

Each command follows the same pattern:
1. Parse arguments
2. Load environment (.env) and build EngineConfig
3. Run one engine operation inside `async with create_engine(...)`
4. Print the result as JSON
5. Return exit code (0 ok, 1 engine error, 2 configuration error)

With the in-memory stores (USE_POSTGRES unset), `--records FILE` seeds the
record store from a JSON file shaped like {"cases": [...], "providers": [...]}.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable

from dotenv import load_dotenv

from case_context_engine.core.config import EngineConfig
from case_context_engine.core.errors import CaseEngineError, ConfigurationError
from case_context_engine.engine import CaseContextEngine, create_engine
from case_context_engine.observability import init_tracing, shutdown_tracing
from case_context_engine.retrieval.document import EntityType

logger = logging.getLogger(__name__)


def _load_env() -> None:
    """Load environment variables from .env file."""
    load_dotenv()


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _read_json(path: str) -> Any:
    return json.loads(Path(path).read_text())


async def _seed_records(engine: CaseContextEngine, path: str | None) -> None:
    if not path:
        return
    for container, items in _read_json(path).items():
        for item in items:
            await engine.records.upsert(container, item)


def _run(
    args: argparse.Namespace,
    operation: Callable[[CaseContextEngine], Awaitable[Any]],
    require_generation: bool = True,
) -> int:
    """Build the engine, run one operation, print its result."""
    try:
        engine = create_engine(EngineConfig.from_env(), require_generation=require_generation)
        init_tracing()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    async def main() -> Any:
        async with engine:
            await _seed_records(engine, getattr(args, "records", None))
            result = await operation(engine)
            await engine.wait_for_background()
            return result

    try:
        result = asyncio.run(main())
    except CaseEngineError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        shutdown_tracing()

    _print_json(result)
    return 0


# ---------------------------------------------------------------------------
# COMMANDS
# ---------------------------------------------------------------------------


def run_vectorize_cli(args: argparse.Namespace) -> int:
    """Vectorize text (or a file's contents) into the collection for --type."""
    content = Path(args.file).read_text() if args.file else args.content
    if not content:
        print("Error: provide content or --file", file=sys.stderr)
        return 1

    metadata = {
        "type": args.type,
        "caseId": args.case_id,
        "providerId": args.provider_id,
        "category": args.category,
        "tags": args.tag or [],
    }

    async def operation(engine: CaseContextEngine) -> Any:
        doc = await engine.vectorize(content, metadata)
        return doc.to_dict()

    return _run(args, operation, require_generation=False)


def run_search_cli(args: argparse.Namespace) -> int:
    """Similarity search across every collection."""

    async def operation(engine: CaseContextEngine) -> Any:
        docs = await engine.search(
            args.query,
            case_id=args.case_id,
            provider_id=args.provider_id,
            limit=args.limit,
            threshold=args.threshold,
        )
        return [doc.to_dict() for doc in docs]

    return _run(args, operation, require_generation=False)


def run_context_cli(args: argparse.Namespace) -> int:
    """Assemble context for a case (or a provider with --provider)."""

    async def operation(engine: CaseContextEngine) -> Any:
        if args.provider:
            context = await engine.get_provider_context(
                args.id, args.query, limit=args.limit, threshold=args.threshold
            )
        else:
            context = await engine.get_context(
                args.id, args.query, limit=args.limit, threshold=args.threshold
            )
        return context.to_dict()

    return _run(args, operation)


def run_recommend_cli(args: argparse.Namespace) -> int:
    """Assemble case context, then synthesize recommendations."""
    rubric = _read_json(args.rubric) if args.rubric else None

    async def operation(engine: CaseContextEngine) -> Any:
        context = await engine.get_context(args.case_id, args.query, limit=args.limit)
        result = await engine.generate_recommendations(
            args.case_id,
            documents=context.documents,
            summary=context.summary,
            rubric=rubric,
        )
        return result.to_wire()

    return _run(args, operation)


def run_simulate_cli(args: argparse.Namespace) -> int:
    """Generate a scenario, or evaluate a response to one (--scenario-file)."""
    payload: dict[str, Any] = {
        "providerId": args.provider_id,
        "caseId": args.case_id,
        "action": args.action,
    }
    if args.action == "evaluate":
        if not args.scenario_file or not args.response:
            print("Error: evaluate needs --scenario-file and --response", file=sys.stderr)
            return 1
        scenario = _read_json(args.scenario_file)
        payload.update(
            scenario=scenario.get("scenario"),
            expectedElements=scenario.get("expectedElements", []),
            response=args.response,
        )

    async def operation(engine: CaseContextEngine) -> Any:
        result = await engine.run_simulation(payload)
        return result.to_wire()

    return _run(args, operation)


def run_chat_cli(args: argparse.Namespace) -> int:
    """Ask a question grounded in a provider's caseload."""

    async def operation(engine: CaseContextEngine) -> Any:
        result = await engine.run_chat({"providerId": args.provider_id, "message": args.message})
        return result.to_wire()

    return _run(args, operation)


# ---------------------------------------------------------------------------
# PARSER
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="case-context",
        description="Case context retrieval and recommendation engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  case-context vectorize --type case --case-id case_123 "Case Type: foster_care, Status: active"
  case-context search "foster care status" --case-id case_123
  case-context context case_123 "school attendance" --records data.json
  case-context recommend case_123 "next steps" --rubric rubric.json
  case-context simulate generate case_123 provider_1
  case-context chat provider_1 "Which families need a visit this week?"
        """,
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def add_records(p: argparse.ArgumentParser) -> None:
        p.add_argument("--records", help="JSON file to seed the record store")

    p = sub.add_parser("vectorize", help="Embed and store a document")
    p.add_argument("content", nargs="?", help="Text to vectorize")
    p.add_argument("--file", help="Read content from a file")
    p.add_argument("--type", required=True, choices=[t.value for t in EntityType])
    p.add_argument("--case-id")
    p.add_argument("--provider-id")
    p.add_argument("--category")
    p.add_argument("--tag", action="append", help="Tag (repeatable)")
    add_records(p)
    p.set_defaults(handler=run_vectorize_cli)

    p = sub.add_parser("search", help="Similarity search across collections")
    p.add_argument("query")
    p.add_argument("--case-id")
    p.add_argument("--provider-id")
    p.add_argument("--limit", type=int, default=5)
    p.add_argument("--threshold", type=float, help="Maximum cosine distance")
    add_records(p)
    p.set_defaults(handler=run_search_cli)

    p = sub.add_parser("context", help="Assemble case or provider context")
    p.add_argument("id", help="Case id (provider id with --provider)")
    p.add_argument("query")
    p.add_argument("--provider", action="store_true", help="Treat id as a provider id")
    p.add_argument("--limit", type=int, default=5)
    p.add_argument("--threshold", type=float, help="Maximum cosine distance")
    add_records(p)
    p.set_defaults(handler=run_context_cli)

    p = sub.add_parser("recommend", help="Generate recommendations for a case")
    p.add_argument("case_id")
    p.add_argument("query")
    p.add_argument("--rubric", help="JSON file with {id, name, content}")
    p.add_argument("--limit", type=int, default=5)
    add_records(p)
    p.set_defaults(handler=run_recommend_cli)

    p = sub.add_parser("simulate", help="Run the scenario/evaluate protocol")
    p.add_argument("action", choices=["generate", "evaluate"])
    p.add_argument("case_id")
    p.add_argument("provider_id")
    p.add_argument("--scenario-file", help="JSON output of a previous generate")
    p.add_argument("--response", help="Provider's response to evaluate")
    add_records(p)
    p.set_defaults(handler=run_simulate_cli)

    p = sub.add_parser("chat", help="Ask a question about a provider's caseload")
    p.add_argument("provider_id")
    p.add_argument("message")
    add_records(p)
    p.set_defaults(handler=run_chat_cli)

    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Main CLI entry point with subcommands.

    Usage:
        case-context vectorize ...
        case-context search ...
        case-context context ...
        case-context recommend ...
        case-context simulate ...
        case-context chat ...
    """
    _load_env()

    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.handler(args)
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
