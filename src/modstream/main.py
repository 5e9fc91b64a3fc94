"""
Modstream
=========

LLM-driven Twitch chat moderation. A language model picks one moderation tool
per suspicious chat message; the monitor admits, executes and audits the
choice against the Twitch Helix API.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. MODSTREAM_HOME environment variable, if set.
    2. If running in a frozen/compiled context (e.g., PyInstaller, Nuitka), use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("MODSTREAM_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
from dotenv import load_dotenv

from modstream.ai.decision_engine import DecisionEngine
from modstream.ai.openai_oracle import OpenAIOracle
from modstream.configuration.app_configuration import AppConfig
from modstream.configuration.moderation_config import load_moderation_config
from modstream.configuration.twitch_settings import TwitchSettings
from modstream.database.db_connection import db_connection
from modstream.database.db_schema import SchemaManager
from modstream.database.mod_actions import ModActionRepository
from modstream.datatypes.collaborators import ChatTransport
from modstream.moderation.action_dispatcher import ActionDispatcher
from modstream.moderation.errors import ConfigError
from modstream.moderation.history_buffer import RecentHistoryBuffer
from modstream.moderation.monitor import Monitor
from modstream.moderation.rate_limiter import ActionRateLimiter
from modstream.telemetry.metrics import InMemoryMetrics
from modstream.twitch.helix_client import HelixClient
from modstream.ui.console import ConsoleChatTransport, ConsoleControl, console_session
from modstream.util.logger import get_logger, handle_exception


logger = get_logger("main")


def load_environment() -> None:
    """Load secrets from ``.env`` into the process environment."""
    load_dotenv(dotenv_path=BASE_DIR / ".env")


async def open_audit_store(app_config: AppConfig) -> ModActionRepository:
    """Open the audit database and make sure the schema exists."""
    await db_connection.open(app_config.database_path)
    await SchemaManager.initialize_schema(db_connection.connection)
    return ModActionRepository(db_connection)


def build_chat_transport(twitch: TwitchSettings, helix: HelixClient) -> ChatTransport:
    """Pick where warn_user messages are delivered."""
    match twitch.chat_transport:
        case "helix":
            return helix
        case "console":
            logger.warning("chat_transport is 'console': warnings will not reach Twitch chat")
            return ConsoleChatTransport()
        case other:
            raise ConfigError(f"twitch.chat_transport must be 'helix' or 'console', got {other!r}")


def build_monitor(
    app_config: AppConfig,
    audit: ModActionRepository,
    metrics: InMemoryMetrics,
) -> Monitor:
    """Wire the oracle, Helix client and dispatcher into a monitor.

    Raises
    ------
    ConfigError
        If the moderation config cannot be loaded or Twitch settings are missing.
    """
    moderation_config = load_moderation_config(app_config.moderation_config_path)
    twitch = app_config.twitch
    if not twitch.access_token or not twitch.client_id or not twitch.broadcaster_id:
        raise ConfigError("twitch.client_id, twitch.access_token and twitch.broadcaster_id must be set")

    helix = HelixClient(
        client_id=twitch.client_id,
        access_token=twitch.access_token,
        broadcaster_id=twitch.broadcaster_id,
        moderator_id=twitch.moderator_id,
    )
    ai_settings = app_config.ai_settings
    engine = DecisionEngine(OpenAIOracle(ai_settings), ai_settings.system_prompt)
    dispatcher = ActionDispatcher(
        config=moderation_config,
        rate_limiter=ActionRateLimiter(moderation_config.rate_limits.actions_per_minute),
        enforcement=helix,
        identity=helix,
        transport=build_chat_transport(twitch, helix),
        channel_name=twitch.channel_name,
    )
    return Monitor(
        config=moderation_config,
        engine=engine,
        dispatcher=dispatcher,
        audit=audit,
        channel_id=twitch.broadcaster_id,
        channel_name=twitch.channel_name,
        history=RecentHistoryBuffer(app_config.history_size),
        metrics=metrics,
    )


async def shutdown_runtime(monitor: Monitor | None) -> None:
    """Stop the monitor and close the audit database."""
    if monitor is not None:
        await monitor.stop()
    await db_connection.close()
    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap the audit store, monitor and console, returning an exit code."""
    load_environment()
    app_config = AppConfig()
    metrics = InMemoryMetrics()

    try:
        logger.info("Opening audit database at %s", app_config.database_path)
        audit = await open_audit_store(app_config)
    except Exception as exc:
        logger.critical("Failed to initialize database: %s", exc)
        return 1

    try:
        monitor = build_monitor(app_config, audit, metrics)
    except ConfigError as exc:
        logger.critical("Invalid configuration: %s", exc)
        await shutdown_runtime(None)
        return 1

    control = ConsoleControl(monitor, metrics, audit)
    try:
        monitor.start()
        async with console_session(control):
            await control.shutdown_event.wait()
    finally:
        await shutdown_runtime(monitor)

    return 0


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process exit code."""
    sys.excepthook = handle_exception
    logger.info("Starting Modstream…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
