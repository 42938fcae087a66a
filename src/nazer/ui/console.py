"""Interactive console for inspecting and stopping the running bot."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
import os
import time

from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.shortcuts import PromptSession

from nazer.datatypes.telegram_datatypes import ChatID
from nazer.services.context import ServiceContext
from nazer.util.logger import get_logger

# Box drawing helpers for aligned console output
BOX_WIDTH = 45

def box_title(title: str) -> list[str]:
    inner_width = BOX_WIDTH - 2
    pad_left = (inner_width - len(title)) // 2
    pad_right = inner_width - len(title) - pad_left
    return [
        f"╔{'═' * inner_width}╗",
        f"║{' ' * pad_left}{title}{' ' * pad_right}║",
        f"╚{'═' * inner_width}╝"
    ]

logger = get_logger("console")

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
        return input_cmd == self.name or input_cmd in self.aliases


def console_print(message: str, style: str = "") -> None:
    """Render text via prompt_toolkit without breaking the active prompt."""
    formatted: FormattedText | str
    if style:
        formatted = FormattedText([(style, message)])
    else:
        formatted = message
    print_formatted_text(formatted)


def format_uptime(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)
    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    return f"{minutes}m {secs}s"


class ConsoleControl:
    """Shutdown signalling plus access to the running services."""

    def __init__(self) -> None:
        self.shutdown_event = asyncio.Event()
        self._services: ServiceContext | None = None

    def set_services(self, services: ServiceContext | None) -> None:
        self._services = services

    @property
    def services(self) -> ServiceContext | None:  # pragma: no cover - trivial getter
        return self._services

    def request_shutdown(self) -> None:
        self.shutdown_event.set()

    def stop(self) -> None:
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
    """Display uptime, cache size and store reachability."""
    for line in box_title("Bot Status"):
        console_print(line, "ansiblue")

    if control.services is None:
        console_print("  Services:   🔴 Not initialized")
        console_print("")
        return

    report = await control.services.health()
    store_status = "🟢 Reachable" if report.store_reachable else "🔴 Unreachable"
    console_print(f"  Uptime:     {format_uptime(report.uptime_seconds)}")
    console_print(f"  Store:      {store_status}")
    console_print(f"  Cache:      {report.cache_entries} entries")
    console_print(f"  Follow-ups: {report.pending_follow_ups} pending")
    console_print(f"  Restores:   {report.pending_restores} pending")
    console_print("")


async def cmd_cache(control: ConsoleControl, args: list[str]) -> None:
    """List the cached keys."""
    if control.services is None:
        console_print("Services not initialized.", "ansiyellow")
        return

    stats = control.services.cache.stats()
    for line in box_title(f"Cache ({stats['count']} entries)"):
        console_print(line, "ansiblue")
    for key in stats["keys"]:
        console_print(f"  • {key}")
    console_print("")


async def cmd_clear_cache(control: ConsoleControl, args: list[str]) -> None:
    """Drop every cached entry."""
    if control.services is None:
        console_print("Services not initialized.", "ansiyellow")
        return
    removed = control.services.cache.clear()
    console_print(f"Cleared {removed} cache entries.", "ansigreen")


async def cmd_quarantined(control: ConsoleControl, args: list[str]) -> None:
    """List users currently quarantined in a group."""
    if control.services is None:
        console_print("Services not initialized.", "ansiyellow")
        return
    if len(args) != 1:
        console_print("Usage: quarantined <chat_id>", "ansiyellow")
        return
    try:
        group_id = ChatID(args[0])
    except ValueError:
        console_print(f"Invalid chat id '{args[0]}'.", "ansired")
        return

    records = await control.services.list_quarantined(group_id)
    for line in box_title(f"Quarantined in {group_id} ({len(records)})"):
        console_print(line, "ansiblue")
    for record in records:
        since = time.strftime("%Y-%m-%d %H:%M", time.localtime(record.started_at))
        console_print(f"  • {record.display_name} ({record.user_id}) since {since}")
    console_print("")


async def cmd_clear(control: ConsoleControl, args: list[str]) -> None:
    """Clear the console screen."""
    os.system('cls' if os.name == 'nt' else 'clear')
    console_print("Console cleared.", "ansigreen")


async def cmd_shutdown(control: ConsoleControl, args: list[str]) -> None:
    """Request graceful bot shutdown."""
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
        aliases=["stat", "info", "health"],
        description="Display uptime, store reachability and cache size",
    ),
    Command(
        name="cache",
        handler=cmd_cache,
        aliases=["keys"],
        description="List the keys currently held in the cache",
    ),
    Command(
        name="clear-cache",
        handler=cmd_clear_cache,
        aliases=["flush"],
        description="Drop every cached lookup (the store is the source of truth)",
    ),
    Command(
        name="quarantined",
        handler=cmd_quarantined,
        aliases=["q"],
        description="List users whose quarantine home is the given group",
        usage="quarantined <chat_id>",
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
        description="Gracefully shut down the bot",
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
    session = PromptSession("> ")

    for line in box_title("Nazer Interactive Console"):
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
    """Run the console alongside the bot, cleaning up automatically."""
    console_task = asyncio.create_task(run_console(control))
    try:
        yield control
    finally:
        control.stop()
        console_task.cancel()
        try:
            await console_task
        except asyncio.CancelledError:
            pass
