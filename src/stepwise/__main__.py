"""
Stepwise command line.

Usage:
    python -m stepwise run "ask('capital of France') -> remember('fact1')"
    python -m stepwise run "useTool('calculator')" --input "2+2"
    python -m stepwise validate "ask('x') -> remember('k')"
    python -m stepwise plan "summarize article X"

Exit codes: 0 success, 1 failure, 2 usage error.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from stepwise.config.loader import ConfigError, load_config
from stepwise.core.errors import StepError
from stepwise.core.result import Result
from stepwise.facade import AgentFacade, Capabilities
from stepwise.pipeline.interpreter import to_step
from stepwise.pipeline.parser import describe
from stepwise.utils.logging_config import configure_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stepwise", description="Compose and run agent capabilities as pipelines"
    )
    parser.add_argument("--config", type=str, help="YAML file merged over the defaults")
    parser.add_argument("--session", type=str, help="Memory session id")

    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Compile and run a pipeline description")
    run.add_argument("description", help="Pipeline description")
    run.add_argument("--input", default="", help="Initial pipeline input")

    validate = commands.add_parser("validate", help="Compile a pipeline description only")
    validate.add_argument("description", help="Pipeline description")

    plan = commands.add_parser("plan", help="Plan a goal and print the pipeline description")
    plan.add_argument("goal", help="Goal to plan for")

    return parser


def _report(result: Result[str, StepError]) -> int:
    if result.is_success:
        print(result.value)
        return EXIT_OK

    print(f"Error: {result.error}", file=sys.stderr)
    if result.error.partial_output:
        print(f"Partial output:\n{result.error.partial_output}", file=sys.stderr)
    return EXIT_FAILURE


async def _run(facade: AgentFacade, description: str, value: str) -> Result[str, StepError]:
    try:
        compiled = facade.compile(description)
        if compiled.is_failure:
            return compiled
        return await to_step(compiled.value, facade.catalog).run(value, facade.context())
    finally:
        await facade.aclose()


async def _plan(facade: AgentFacade, goal: str) -> Result[str, StepError]:
    try:
        return await facade.plan(goal)
    finally:
        await facade.aclose()


def main(argv: Optional[List[str]] = None, capabilities: Optional[Capabilities] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return EXIT_OK if e.code == 0 else EXIT_USAGE

    configure_logging()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_USAGE

    if args.command == "validate":
        # No collaborators are needed to check names and arity against the catalog
        checker = AgentFacade(capabilities or Capabilities(), config=config)
        return _report(checker.compile(args.description).map(describe))

    facade = AgentFacade(
        capabilities or Capabilities.with_defaults(config), config=config, session_id=args.session
    )
    if args.command == "run":
        return _report(asyncio.run(_run(facade, args.description, args.input)))
    return _report(asyncio.run(_plan(facade, args.goal)))


if __name__ == "__main__":
    sys.exit(main())
