"""Command line entry-point for the console chat."""
from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional

from rich.console import Console
from rich.text import Text

from .config import Settings, load_settings
from .errors import ConfigurationError, RequestCancelled
from .llm import CompletionClient, Deadline, EchoBackend, GeminiBackend, LangChainBackend, OpenAIBackend
from .memory import Role
from .session import ChatConfig, ChatSession


LOGGER = logging.getLogger(__name__)

ReadLine = Callable[[str], str]

HELP_TEXT = (
    "Commands:\n"
    "/help - show help\n"
    "/clear - clear conversation history\n"
    "/history - print conversation history\n"
    "/exit or /quit - exit"
)

COMMANDS = {
    "/help": "help",
    "/clear": "clear",
    "/history": "history",
    "exit": "exit",
    "/exit": "exit",
    "/quit": "exit",
}


def configure_logging(level_name: str, log_file: Optional[str]) -> None:
    """Configure application-wide logging early in the CLI lifecycle."""

    level = getattr(logging, level_name.upper(), None)
    if not isinstance(level, int):
        raise SystemExit(f"Invalid log level: {level_name}")

    handler: logging.Handler
    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler()

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        handlers=[handler],
        force=True,
    )
    LOGGER.debug("Logging configured: level=%s, log_file=%s", level_name.upper(), log_file)


def parse_command(text: str) -> Optional[str]:
    """Map console input to a command name, or ``None`` for a chat turn."""

    return COMMANDS.get(text.strip().lower())


def build_backend(args: argparse.Namespace, settings: Settings):
    if args.mock:
        return EchoBackend()

    if args.langchain:
        from langchain.chat_models import init_chat_model  # type: ignore

        return LangChainBackend(chat_model=init_chat_model(args.langchain))

    if args.openai_model:
        from openai import AsyncOpenAI  # type: ignore

        return OpenAIBackend(client=AsyncOpenAI(), model=args.openai_model)

    api_key = settings.require_api_key()
    from google import genai

    return GeminiBackend(client=genai.Client(api_key=api_key), model=settings.model)


def print_history(session: ChatSession, console: Console) -> None:
    messages = [message for message in session.history() if message.role is not Role.SYSTEM]
    if not messages:
        console.print("No conversation history.")
        return
    console.print("Conversation History:")
    for message in messages:
        console.print(Text(f"{message.role.value.upper()}: {message.content}\n"))


def console_reader(console: Console) -> ReadLine:
    def read_line(prompt: str) -> str:
        return console.input(Text(prompt, style="cyan"))

    return read_line


def ask_name(console: Console, read_line: ReadLine) -> Optional[str]:
    while True:
        try:
            name = read_line("Your name please: ").strip()
        except EOFError:
            return None
        if name:
            console.print(f"Hello, {name}! Please ask your question.", markup=False)
            return name


async def chat_loop(
    session: ChatSession,
    console: Console,
    *,
    user_name: str,
    read_line: ReadLine,
    timeout: float,
) -> None:
    """Read console input until the user exits, one turn at a time."""

    while True:
        try:
            raw = read_line(f"{user_name}: ")
        except EOFError:
            break
        text = raw.strip()
        if not text:
            console.print("Please enter a question or command.")
            continue

        command = parse_command(text)
        if command == "exit":
            break
        if command == "help":
            console.print(HELP_TEXT, markup=False)
            continue
        if command == "clear":
            session.clear()
            console.print("Conversation history cleared.")
            continue
        if command == "history":
            print_history(session, console)
            continue

        try:
            with console.status("Thinking..."):
                reply = await session.send(text, Deadline.after(timeout))
        except RequestCancelled as exc:
            console.print(
                f"Request was cancelled or timed out after {exc.attempts} attempt(s). Please try again.",
                style="red",
                markup=False,
            )
            continue
        except Exception as exc:
            LOGGER.exception("Chat turn failed")
            console.print(Text(f"Error: {exc}", style="red"))
            continue
        console.print(Text(f"AI: {reply}", style="yellow"))


def main(
    argv: Optional[list[str]] = None,
    *,
    console: Optional[Console] = None,
    read_line: Optional[ReadLine] = None,
) -> int:
    parser = argparse.ArgumentParser(description="Console chat with a hosted language model")
    parser.add_argument("--model", help="Gemini model identifier (overrides GEMINI_MODEL)")
    parser.add_argument("--system-prompt", help="Path to a custom system prompt file")
    parser.add_argument("--timeout", type=float, help="Per-request timeout in seconds")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Python logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to this file instead of the console",
    )

    llm_group = parser.add_mutually_exclusive_group(required=False)
    llm_group.add_argument("--mock", action="store_true", help="Use the offline echo backend")
    llm_group.add_argument("--langchain", help="LangChain model identifier")
    llm_group.add_argument("--openai-model", help="OpenAI chat completion model name")

    args = parser.parse_args(argv)
    configure_logging(args.log_level, args.log_file)
    console = console or Console()

    try:
        settings = load_settings()
        if args.model:
            settings.model = args.model
        if args.timeout is not None:
            settings.timeout = args.timeout
        if args.system_prompt:
            settings.system_prompt = Path(args.system_prompt).read_text(encoding="utf-8").strip()
            LOGGER.info("Using custom system prompt from %s", args.system_prompt)
        backend = build_backend(args, settings)
    except ConfigurationError as exc:
        console.print(str(exc), style="red", markup=False)
        return 1
    LOGGER.info("Selected LLM backend: %s", backend.__class__.__name__)

    session = ChatSession(
        client=CompletionClient(backend),
        config=ChatConfig(system_prompt=settings.system_prompt),
    )
    read_line = read_line or console_reader(console)

    console.print("Welcome to Gemini Chat! Type your question, or 'exit' to quit. Type '/help' for commands.")
    try:
        user_name = ask_name(console, read_line)
        if user_name:
            asyncio.run(
                chat_loop(session, console, user_name=user_name, read_line=read_line, timeout=settings.timeout)
            )
    except KeyboardInterrupt:
        LOGGER.debug("Interrupted by user")
    console.print("Goodbye!")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
