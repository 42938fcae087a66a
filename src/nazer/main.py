"""
Nazer Quarantine Bot
====================

A Telegram bot that keeps a quarantined user confined to a single group:
entering quarantine removes the user from every other group the bot
administers, and a configured follow-up message is posted after a delay.
"""

import os
import sys
from pathlib import Path

def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. NAZER_HOME environment variable, if set.
    2. If running in a frozen/compiled context (e.g., PyInstaller, Nuitka), use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's package directory.
    """
    if env_home := os.getenv("NAZER_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]

BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
from dotenv import load_dotenv
from telegram import Update
from telegram.ext import Application

from nazer.chat.telegram_client import TelegramChatClient
from nazer.configuration.app_configuration import app_config
from nazer.database.membership_store import StoreError
from nazer.services.context import ServiceContext
from nazer.ui.console import ConsoleControl, console_session
from nazer.util.logger import get_logger, handle_exception
from nazer.bot.common import SERVICES_KEY


logger = get_logger("main")


def load_environment() -> str:
    """Load environment variables and return the Telegram bot token.

    Returns
    -------
    str
        Bot token extracted from the loaded environment.

    Raises
    ------
    SystemExit
        If the required ``BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("BOT_TOKEN")
    if not token:
        logger.critical("'BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def load_handlers(application: Application) -> None:
    """Register every update handler with the application."""
    from nazer.bot import group_handlers, quarantine_handlers, start_handler

    start_handler.setup(application)
    quarantine_handlers.setup(application)
    group_handlers.setup(application)

    logger.info("All handlers loaded successfully.")


def create_application(token: str) -> Application:
    """Build the Telegram application and attach the service context."""
    application = Application.builder().token(token).build()
    application.bot_data[SERVICES_KEY] = ServiceContext(app_config, TelegramChatClient(application.bot))
    load_handlers(application)
    return application


async def start_bot(application: Application) -> None:
    """Connect to Telegram and begin long polling.

    Parameters
    ----------
    application:
        Application whose updater should start polling.
    """
    logger.info("Attempting to connect to Telegram…")
    await application.initialize()
    await application.start()
    await application.updater.start_polling(allowed_updates=Update.ALL_TYPES)
    logger.info("Polling for updates as @%s", application.bot.username)


async def shutdown_runtime(application: Application, services: ServiceContext) -> None:
    """Stop polling, drain background work and close the store.

    Every step runs even if an earlier one fails.
    """
    if application.updater is not None and application.updater.running:
        try:
            await application.updater.stop()
        except Exception as exc:
            logger.exception("Error stopping updater: %s", exc)

    if application.running:
        try:
            await application.stop()
        except Exception as exc:
            logger.exception("Error stopping application: %s", exc)

    await services.shutdown()

    try:
        await application.shutdown()
    except Exception as exc:
        logger.exception("Error during application shutdown: %s", exc)

    logger.info("Shutdown complete.")


async def run_bot_session(application: Application, services: ServiceContext, control: ConsoleControl) -> int:
    """Run the bot alongside the console until shutdown is requested, returning an exit code."""
    control.set_services(services)
    exit_code = 0

    try:
        async with console_session(control):
            try:
                await start_bot(application)
                await control.shutdown_event.wait()
            except asyncio.CancelledError:
                logger.info("Bot session cancelled; proceeding to shutdown")
            except Exception as exc:
                logger.critical("Telegram bot runtime error: %s", exc)
                exit_code = 1
    finally:
        control.set_services(None)
        await shutdown_runtime(application, services)

    return exit_code


async def async_main() -> int:
    """Bootstrap the store, the bot and the console, returning an exit code.

    Returns
    -------
    int
        Process exit code reflecting success or failure of initialization.
    """
    token = load_environment()

    try:
        application = create_application(token)
    except Exception as exc:
        logger.critical("Failed to initialize Telegram bot: %s", exc)
        return 1

    services: ServiceContext = application.bot_data[SERVICES_KEY]
    try:
        logger.info("Initializing database at %s...", app_config.database_path)
        await services.start()
    except StoreError as exc:
        logger.critical("Failed to initialize database: %s", exc)
        await services.shutdown()
        return 1

    control = ConsoleControl()
    return await run_bot_session(application, services, control)


def main() -> int:
    """Entrypoint that orchestrates the async runtime and returns the process code."""
    logger.info("Starting Nazer Quarantine Bot…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        if code is None:
            return 1
        try:
            return int(code)
        except (ValueError, TypeError):
            logger.warning("SystemExit.code is not an int (%r); defaulting to 1", code)
            return 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.excepthook = handle_exception
    print(f"Exited with code: {main()}")
