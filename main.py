#!/usr/bin/env python3
"""
MMX Uploader - Main Entry Point

Reads donation sign-ups from the Google Sheet and files them into MMX.

Usage:
    # Dashboard (optionally auto-starts polling, see AUTO_START_POLLING)
    python main.py serve

    # Headless poller
    python main.py poll --concurrency 3

    # Process a single row
    python main.py process --row 12

    # Run one stage against a live session (step-wise debugging)
    python main.py stage login --row 12
"""

import argparse
import asyncio
import logging
import sys

from api.config import get_config
from api.logging_config import setup_logging
from automation.stages import STAGE_NAMES
from core.orchestrator import AutomationOrchestrator
from monitoring.telemetry import EventBroadcaster

logger = logging.getLogger(__name__)


def check_environment(config) -> bool:
    """Check that required settings are present."""
    missing = config.validate()
    if missing:
        print("❌ Missing required configuration:")
        for name in missing:
            print(f"  - {name}")
        print("\nPlease set these in your .env file or environment.")
        return False
    return True


def build(log_level: str) -> AutomationOrchestrator:
    config = get_config()
    broadcaster = EventBroadcaster()
    setup_logging(config.LOG_DIR, level=log_level, broadcaster=broadcaster)
    return AutomationOrchestrator.from_config(config, broadcaster=broadcaster)


def run_server(orchestrator: AutomationOrchestrator, host: str, port: int):
    """Run the dashboard."""
    import uvicorn
    from api.dashboard import create_app

    print(f"🚀 Dashboard on http://{host}:{port}")
    uvicorn.run(create_app(orchestrator), host=host, port=port, log_level="info")


async def run_poller(orchestrator: AutomationOrchestrator, interval_ms: int = None):
    """Poll until interrupted."""
    await orchestrator.startup()
    result = orchestrator.start_polling(interval_ms)
    logger.info(result["message"])
    try:
        await orchestrator.scheduler.tick()
        await orchestrator.scheduler.wait_stopped()
    finally:
        await orchestrator.shutdown()


async def process_row(orchestrator: AutomationOrchestrator, row: int) -> bool:
    await orchestrator.startup()
    try:
        result = await orchestrator.process_job(row)
    finally:
        await orchestrator.shutdown()

    if result.success:
        logger.info(f"✅ {result.message}")
    else:
        logger.error(f"❌ {result.message}")
        if result.screenshot_path:
            logger.error(f"Screenshot: {result.screenshot_path}")
    return result.success


async def run_single_stage(orchestrator: AutomationOrchestrator, name: str, row: int, worker_key: str,
                           keep_open: bool = False) -> bool:
    await orchestrator.startup()
    try:
        outcome = await orchestrator.run_stage(name, row=row, worker_key=worker_key)
        if outcome.data:
            for key, value in outcome.data.items():
                logger.info(f"  {key}: {value}")
        if keep_open:
            await asyncio.to_thread(input, "Browser left open. Press Enter to close...")
    finally:
        await orchestrator.shutdown()
    return outcome.success


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="MMX Uploader - Google Sheet to MMX donation upload automation"
    )
    parser.add_argument('--log-level', default='INFO', help='Log level')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Serve command
    serve_parser = subparsers.add_parser('serve', help='Run the dashboard')
    serve_parser.add_argument('--host', default=None, help='Host to bind to')
    serve_parser.add_argument('--port', type=int, default=None, help='Port to bind to')

    # Poll command
    poll_parser = subparsers.add_parser('poll', help='Poll the sheet without a dashboard')
    poll_parser.add_argument('--interval-ms', type=int, default=None, help='Poll interval in milliseconds')
    poll_parser.add_argument('--concurrency', type=int, default=None, help='Concurrent workers (1-5)')

    # Process command
    process_parser = subparsers.add_parser('process', help='Process a single row')
    process_parser.add_argument('--row', type=int, required=True, help='Sheet row number')

    # Stage command
    stage_parser = subparsers.add_parser('stage', help='Run one stage against a live session')
    stage_parser.add_argument('name', choices=STAGE_NAMES, help='Stage to run')
    stage_parser.add_argument('--row', type=int, required=True, help='Sheet row number')
    stage_parser.add_argument('--worker', default='default', help='Worker key (browser profile)')
    stage_parser.add_argument('--keep-open', action='store_true', help='Wait for Enter before closing the browser')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    orchestrator = build(args.log_level)

    if args.command == 'serve':
        config = orchestrator.config
        run_server(orchestrator, args.host or config.DASHBOARD_HOST, args.port or config.DASHBOARD_PORT)
        return

    if not check_environment(orchestrator.config):
        sys.exit(1)

    try:
        if args.command == 'poll':
            if args.concurrency is not None:
                orchestrator.scheduler.concurrency = args.concurrency
            asyncio.run(run_poller(orchestrator, args.interval_ms))

        elif args.command == 'process':
            ok = asyncio.run(process_row(orchestrator, args.row))
            sys.exit(0 if ok else 1)

        elif args.command == 'stage':
            ok = asyncio.run(run_single_stage(orchestrator, args.name, args.row, args.worker, args.keep_open))
            sys.exit(0 if ok else 1)
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
