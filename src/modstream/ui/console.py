"""Interactive operator console for the running moderation monitor."""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.shortcuts import PromptSession

from modstream.database.mod_actions import ModActionRepository
from modstream.datatypes.chat_datatypes import ChatMessage
from modstream.moderation.monitor import Monitor
from modstream.telemetry.metrics import InMemoryMetrics
from modstream.util.logger import get_logger

# Box drawing helpers for aligned console output
BOX_WIDTH = 45


def box_title(title: str) -> list[str]:
    inner_width = BOX_WIDTH - 2
    pad_left = (inner_width - len(title)) // 2
    pad_right = inner_width - len(title) - pad_left
    return [
        f"╔{'═' * inner_width}╗",
        f"║{' ' * pad_left}{title}{' ' * pad_right}║",
        f"╚{'═' * inner_width}╝",
    ]


logger = get_logger("console")

DEFAULT_AUDIT_ROWS = 10

# Type alias for command handler functions
CommandHandler = Callable[["ConsoleControl", list[str]], Awaitable[None]]


@dataclass
class Command:
    """Definition of a console command."""
    name: str
    handler: CommandHandler
    aliases: list[str]
    description: str
    usage: str = ""

    def matches(self, input_cmd: str) -> bool:
        """Check if input matches this command or any alias."""
        return input_cmd == self.name or input_cmd in self.aliases


def console_print(message: str, style: str = "") -> None:
    """Render text via prompt_toolkit without breaking the active prompt."""
    formatted: FormattedText | str
    if style:
        formatted = FormattedText([(style, message)])
    else:
        formatted = message
    print_formatted_text(formatted)


class ConsoleChatTransport:
    """Chat transport that prints outgoing messages to the operator console."""

    async def send(self, channel: str, text: str) -> None:
        console_print(f"[#{channel}] {text}", "ansimagenta")
        logger.warning("[CHAT] Console transport, not delivered to Twitch: #%s <- %s", channel, text)


class ConsoleControl:
    """Shared state between the console commands and the running monitor."""

    def __init__(
        self,
        monitor: Monitor,
        metrics: InMemoryMetrics,
        audit: ModActionRepository,
    ) -> None:
        self.shutdown_event = asyncio.Event()
        self.monitor = monitor
        self.metrics = metrics
        self.audit = audit

    def request_shutdown(self) -> None:
        self.shutdown_event.set()

    def is_shutdown_requested(self) -> bool:
        return self.shutdown_event.is_set()


# ==================== Command Handlers ====================

async def cmd_help(control: ConsoleControl, args: list[str]) -> None:
    """Display available commands and their descriptions."""
    for line in box_title("Console Commands Reference"):
        console_print(line, "ansigreen")

    for cmd in COMMANDS:
        aliases_str = f" (aliases: {', '.join(cmd.aliases)})" if cmd.aliases else ""
        console_print(f"\n  {cmd.name}{aliases_str}", "ansicyan")
        console_print(f"    {cmd.description}")
        if cmd.usage:
            console_print(f"    Usage: {cmd.usage}", "ansibrightblack")

    console_print("")


async def cmd_status(control: ConsoleControl, args: list[str]) -> None:
    """Display monitor state, rate-limit usage and counters."""
    monitor = control.monitor
    config = monitor.config
    limiter = monitor.dispatcher.rate_limiter

    for line in box_title("Monitor Status"):
        console_print(line, "ansiblue")

    running = "🟢 Running" if monitor.is_running else "🔴 Stopped"
    console_print(f"  Monitor:     {running}")
    console_print(f"  Enabled:     {config.enabled}")
    console_print(f"  Dry run:     {config.dry_run}")
    console_print(f"  Rate limit:  {limiter.used()}/{limiter.budget} this minute")
    console_print(f"  Queue depth: {monitor.queue_depth}")
    console_print(f"  Tools:       {', '.join(tool.name.value for tool in monitor.allowed_tools)}")

    counters = control.metrics.snapshot()
    if counters:
        console_print("  Counters:")
        for name, value in sorted(counters.items()):
            console_print(f"    {name}: {value}")
    console_print("")


async def cmd_say(control: ConsoleControl, args: list[str]) -> None:
    """Inject a chat message into the monitor as if it came from chat."""
    if len(args) < 2:
        console_print("Usage: say <user> <message>", "ansiyellow")
        return

    user, text = args[0], " ".join(args[1:])
    message = ChatMessage(
        message_id=str(uuid.uuid4()),
        channel=control.monitor.channel_name,
        user_login=user.lower(),
        display_name=user,
        text=text,
    )
    if not control.monitor.submit(message):
        console_print("Intake queue is full; message dropped.", "ansired")


async def cmd_history(control: ConsoleControl, args: list[str]) -> None:
    """Print the recent-history snapshot the model would see."""
    entries = control.monitor.history.snapshot()
    if not entries:
        console_print("History is empty.", "ansiyellow")
        return

    for line in box_title(f"Recent Chat ({len(entries)})"):
        console_print(line, "ansiblue")
    for entry in entries:
        console_print(f"  {entry.timestamp:%H:%M:%S} [{entry.username}]: {entry.text}")
    console_print("")


async def cmd_audit(control: ConsoleControl, args: list[str]) -> None:
    """Print the newest audit records, optionally for one user."""
    limit = DEFAULT_AUDIT_ROWS
    username = None
    for arg in args:
        if arg.isdigit():
            limit = int(arg)
        else:
            username = arg

    actions = await control.audit.recent(limit=limit, username=username)
    if not actions:
        console_print("No audit records found.", "ansiyellow")
        return

    title = f"Audit Trail ({len(actions)})" if username is None else f"Audit Trail: {username}"
    for line in box_title(title):
        console_print(line, "ansiblue")

    for action in actions:
        status = "ok" if action.success else "FAILED"
        style = "" if action.success else "ansired"
        console_print(
            f"  {action.created_at:%Y-%m-%d %H:%M:%S} {action.tool_call_name} -> "
            f"{action.target_username or '-'} [{status}] {action.llm_reasoning}",
            style,
        )
        if action.error_message:
            console_print(f"      {action.error_message}", "ansibrightblack")

    if username is not None:
        count = await control.audit.count_successful_for_user(username)
        console_print(f"\n  Successful actions against {username} in the last 24h: {count}")
    console_print("")


async def cmd_clear(control: ConsoleControl, args: list[str]) -> None:
    """Clear the console screen."""
    os.system('cls' if os.name == 'nt' else 'clear')
    console_print("Console cleared.", "ansigreen")


async def cmd_shutdown(control: ConsoleControl, args: list[str]) -> None:
    """Request graceful shutdown."""
    console_print("Shutdown requested.", "ansiyellow")
    control.request_shutdown()


# ==================== Command Registry ====================

COMMANDS: list[Command] = [
    Command(
        name="help",
        handler=cmd_help,
        aliases=["h", "?"],
        description="Show this help message with all available commands",
    ),
    Command(
        name="status",
        handler=cmd_status,
        aliases=["stat", "info"],
        description="Display monitor state, rate-limit usage, queue depth and counters",
    ),
    Command(
        name="say",
        handler=cmd_say,
        aliases=["chat"],
        description="Feed a chat message into the moderation pipeline",
        usage="say <user> <message>",
    ),
    Command(
        name="history",
        handler=cmd_history,
        aliases=["hist"],
        description="Show the recent chat history buffer",
    ),
    Command(
        name="audit",
        handler=cmd_audit,
        aliases=["log"],
        description="Show recent moderation audit records",
        usage="audit [count] [username]",
    ),
    Command(
        name="clear",
        handler=cmd_clear,
        aliases=["cls"],
        description="Clear the console screen",
    ),
    Command(
        name="shutdown",
        handler=cmd_shutdown,
        aliases=["stop", "quit", "exit"],
        description="Stop the monitor and exit",
    ),
]


# ==================== Command Dispatcher ====================

async def handle_console_command(command: str, control: ConsoleControl) -> None:
    """Interpret and execute a single console command line."""
    if not command.strip():
        return

    parts = command.strip().split()
    cmd_name = parts[0].lower()
    args = parts[1:]

    for cmd in COMMANDS:
        if cmd.matches(cmd_name):
            try:
                await cmd.handler(control, args)
            except Exception as exc:
                logger.exception("Error executing command '%s': %s", cmd_name, exc)
                console_print(f"Error executing command: {exc}", "ansired")
            return

    console_print(f"Unknown command '{cmd_name}'. Type 'help' for available commands.", "ansired")


async def run_console(control: ConsoleControl) -> None:
    """Run the interactive console until shutdown is requested."""
    session: PromptSession[str] = PromptSession("> ")

    for line in box_title("Modstream Operator Console"):
        console_print(line, "ansigreen")
    console_print("Type 'help' for available commands or 'exit' to quit.\n", "ansibrightblack")

    with patch_stdout():
        while not control.is_shutdown_requested():
            try:
                line = await session.prompt_async()
                if line.strip():
                    await handle_console_command(line, control)
            except (EOFError, KeyboardInterrupt):
                console_print("\nShutdown requested by user.", "ansiyellow")
                control.request_shutdown()
                break


@asynccontextmanager
async def console_session(control: ConsoleControl) -> AsyncIterator[ConsoleControl]:
    """Run the console alongside the monitor, cleaning up automatically."""
    console_task = asyncio.create_task(run_console(control))
    try:
        yield control
    finally:
        control.request_shutdown()
        console_task.cancel()
        try:
            await console_task
        except asyncio.CancelledError:
            pass
