"""
Activo CLI - headless mode.

Commands:
    activo -p "Find TODO comments in src/"     Run one agent turn and print the answer
    activo -p "..." --model codellama:13b      Override the configured model
    activo --list-sessions                     Show saved conversations

Progress (capability calls) goes to stderr, the final answer to stdout.
Ctrl+C cancels the running turn.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from .agent import (
    AgentEvent,
    CapabilityDoneEvent,
    CapabilityStartEvent,
    create_agent,
)
from .config import AppSettings, ConfigError, get_settings
from .providers.llm import Message, OllamaGateway
from .session import SessionStore, get_session_context
from .tools import create_default_registry
from .utils import CancellationToken

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def print_event(event: AgentEvent) -> None:
    """Report capability progress on stderr."""
    if isinstance(event, CapabilityStartEvent):
        print(f"[Tool] {event.name}: running", file=sys.stderr)
    elif isinstance(event, CapabilityDoneEvent):
        status = "success" if event.result.success else f"error ({event.result.error})"
        print(f"[Tool] {event.name}: {status}", file=sys.stderr)


async def run_headless(prompt: str, settings: AppSettings, args: argparse.Namespace) -> int:
    """Run one turn against the configured Ollama server."""
    gateway = OllamaGateway.from_settings(
        settings.ollama,
        prefer_streaming=settings.agent.prefer_streaming and not args.no_stream,
        channel_size=settings.agent.channel_size,
    )
    if args.model:
        gateway.model = args.model

    async with gateway:
        if not await gateway.is_connected():
            print("Error: Cannot connect to Ollama", file=sys.stderr)
            print(f"Make sure Ollama is running at {gateway.base_url}", file=sys.stderr)
            return EXIT_FAILURE

        store = SessionStore(Path(args.project_dir) / settings.session.directory)

        summary = ""
        recent: list[Message] = []
        try:
            summary, recent = await get_session_context(
                store, gateway, settings.session.recent_count
            )
        except Exception as e:
            logger.warning(f"[cli] Could not load previous session context: {e}")

        tools = create_default_registry(
            gateway,
            standards_directory=Path(args.project_dir) / settings.standards.directory,
        )
        agent = create_agent(
            gateway,
            tools,
            max_iterations=args.max_iterations or settings.agent.max_iterations,
            channel_size=settings.agent.channel_size,
        )

        token = CancellationToken()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, token.cancel, "interrupted")
            handles_sigint = True
        except (NotImplementedError, RuntimeError):
            handles_sigint = False

        try:
            result = await agent.run(
                prompt,
                recent,
                cancel=token,
                context_summary=summary or None,
                on_event=print_event,
            )
        finally:
            if handles_sigint:
                loop.remove_signal_handler(signal.SIGINT)

    if result.cancelled:
        print("Cancelled", file=sys.stderr)
        return EXIT_CANCELLED

    if not result.success:
        if result.content:
            print(result.content)
        print(f"Error: {result.error_message}", file=sys.stderr)
        return EXIT_FAILURE

    print(result.content)

    session = store.create()
    # Only this turn; the carried-over messages already live in the previous session
    session.messages.extend(result.messages[len(recent):])
    store.save(session)
    store.clean_old_sessions(settings.session.keep_count)

    return EXIT_OK


def cmd_list_sessions(settings: AppSettings, args: argparse.Namespace) -> int:
    store = SessionStore(Path(args.project_dir) / settings.session.directory)
    sessions = store.list_sessions()
    if not sessions:
        print("No saved sessions")
        return EXIT_OK
    for entry in sessions:
        print(f"{entry['id']}  {entry['updated_at'] or '-'}  {entry['preview']}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="activo",
        description="Activo - code quality assistant driven by a local Ollama model",
    )
    parser.add_argument("-p", "--prompt", help="Run one request in headless mode")
    parser.add_argument("--model", help="Ollama model to use (overrides config)")
    parser.add_argument(
        "--no-stream",
        action="store_true",
        help="Request complete responses instead of streaming",
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help="Maximum completion requests per turn",
    )
    parser.add_argument(
        "--project-dir",
        default=".",
        help="Project root holding .activo/ (default: current directory)",
    )
    parser.add_argument("--list-sessions", action="store_true", help="List saved sessions")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = get_settings(args.project_dir)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    configure_logging("DEBUG" if args.verbose else settings.log_level)

    if args.max_iterations is not None and args.max_iterations < 1:
        parser.error("--max-iterations must be at least 1")

    if args.list_sessions:
        return cmd_list_sessions(settings, args)

    if not args.prompt:
        print("Error: Prompt is required in headless mode", file=sys.stderr)
        print('Usage: activo -p "your prompt here"', file=sys.stderr)
        return EXIT_FAILURE

    try:
        return asyncio.run(run_headless(args.prompt, settings, args))
    except KeyboardInterrupt:
        print("Cancelled", file=sys.stderr)
        return EXIT_CANCELLED


if __name__ == "__main__":
    sys.exit(main())
