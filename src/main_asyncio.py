"""
main_asyncio.py - Application entry point for the button monitor
-----------------------------------------------------------------

Responsible for:
- loading the button configuration
- building the line backend and registering buttons
- running the watch loops until Ctrl+C / SIGTERM
- graceful shutdown through the ShutdownCoordinator
"""

import sys

# Set UTF-8 encoding for output BEFORE logging anything (fixes Unicode symbol rendering)
if hasattr(sys.stdout, 'reconfigure') and sys.stdout.encoding != 'UTF-8':
    sys.stdout.reconfigure(encoding='utf-8')  # type: ignore
if hasattr(sys.stderr, 'reconfigure') and sys.stderr.encoding != 'UTF-8':
    sys.stderr.reconfigure(encoding='utf-8')  # type: ignore

import argparse
import asyncio

from hardware.errors import ButtonError, PinConfigurationFailed
from hardware.gpio import create_line_backend
from lifecycle import ShutdownCoordinator
from lifecycle.handlers import (
    AllTasksCancellationHandler,
    ButtonManagerShutdownHandler,
    LineBackendShutdownHandler,
)
from managers.button_manager import ButtonManager
from managers.config_manager import ConfigManager
from models.enums import LogCategory, LogLevel
from utils.logger import get_logger, configure_logger

log = get_logger().for_category(LogCategory.SYSTEM)


def on_press(identifier: str) -> None:
    """Default callback: log every accepted press."""
    get_logger().info(LogCategory.BUTTON, "Button pressed", button=identifier)


def register_buttons(manager: ButtonManager, config: ConfigManager) -> int:
    """
    Register every configured button, skipping (and logging) the ones that
    fail so the rest still work.

    Returns:
        Number of buttons registered
    """
    for definition in config.buttons:
        try:
            manager.register_button(definition.to_config(on_press))
        except PinConfigurationFailed as e:
            if e.is_busy:
                log.warn("Skipping button, line is used by another process",
                         button=definition.identifier, error=str(e))
            else:
                log.warn("Skipping button", button=definition.identifier, error=str(e))
        except ButtonError as e:
            log.warn("Skipping button", button=definition.identifier, error=str(e))
    return manager.button_count()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Debounced GPIO button monitor")
    parser.add_argument("--config", default="config/buttons.yaml", help="YAML config (relative to src/)")
    parser.add_argument("--debug", action="store_true", help="Log every edge decision")
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI colors")
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    """Main async entry point."""
    args = parse_args(argv)
    configure_logger(LogLevel.DEBUG if args.debug else LogLevel.INFO, use_colors=not args.no_color)

    log.info("Starting button monitor...")

    # ========================================================================
    # 1. CONFIGURATION
    # ========================================================================

    config = ConfigManager(config_path=args.config)
    config.load()

    # ========================================================================
    # 2. HARDWARE
    # ========================================================================

    backend = create_line_backend(config.backend)
    manager = ButtonManager(
        backend,
        poll_timeout=config.poll_timeout,
        max_consecutive_errors=config.max_consecutive_errors,
    )

    if register_buttons(manager, config) == 0:
        log.error("No buttons could be registered, exiting")
        backend.close()
        return 1
    manager.log_registry()

    # ========================================================================
    # 3. SHUTDOWN COORDINATOR
    # ========================================================================

    coordinator = ShutdownCoordinator()
    coordinator.register(ButtonManagerShutdownHandler(manager))
    coordinator.register(AllTasksCancellationHandler())
    coordinator.register(LineBackendShutdownHandler(backend))

    loop = asyncio.get_running_loop()
    coordinator.setup_signal_handlers(loop)

    # ========================================================================
    # 4. RUN
    # ========================================================================

    await manager.start()
    log.info("Watching buttons. Press Ctrl+C to exit.")

    await coordinator.wait_for_shutdown()
    await coordinator.shutdown_all()
    log.info("Button monitor shut down cleanly.")
    return 0


# ---------------------------------------------------------------------------
# ENTRY POINT
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    exit_code = 0
    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        log.info("Keyboard interrupt received")
    except Exception as e:
        log.error(f"Fatal error: {e}", exc_info=True)
        exit_code = 1
    sys.exit(exit_code)
