#!/usr/bin/env python3
"""
Interactive console for the intake assistant.

Plays the candidate side of a conversation in the terminal. Replies are
printed as the channel would deliver them; sessions go to the configured
session store, and the retention sweep runs in the background.

Usage:
    python scripts/chat_console.py
    python scripts/chat_console.py --identity +40711111111 --channel +31612345678
    python scripts/chat_console.py --store memory --debug

Commands inside the console:
    /cv <url> [mime-type]   send a document (default application/pdf)
    /sweep                  run one retention sweep now
    /quit                   exit
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment before other imports
load_dotenv()

from src.common.config import Config
from src.common.logger import set_global_debug_mode, setup_logging
from src.common.repositories import SessionStoreConfig, StoreBackend, create_session_store
from src.services.channels import MessageChannel
from src.services.conversation_orchestrator import ConversationOrchestrator, InboundEvent
from src.services.document_pipeline import MediaReference
from src.services.retention_sweeper import RetentionSweeper

logger = logging.getLogger("chat_console")


class ConsoleChannel(MessageChannel):
    """Prints outbound texts to stdout."""

    def send(self, identity: str, text: str) -> None:
        print(f"\n🤖 {text}\n")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Chat with the intake assistant in the terminal")
    parser.add_argument("--identity", default="console:+40700000001", help="Candidate identity")
    parser.add_argument("--channel", default="", help="Channel number the candidate writes to (selects the tenant)")
    parser.add_argument(
        "--store",
        choices=[backend.value for backend in StoreBackend],
        default=None,
        help="Session store override (default: SESSION_STORE)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser.parse_args()


def build_event(args: argparse.Namespace, line: str) -> InboundEvent:
    if line.startswith("/cv "):
        parts = line.split()
        media = MediaReference(url=parts[1], mime_type=parts[2] if len(parts) > 2 else "application/pdf")
        return InboundEvent(identity=args.identity, channel_number=args.channel, media=media)
    return InboundEvent(identity=args.identity, channel_number=args.channel, text=line)


async def main() -> int:
    args = parse_args()
    setup_logging(level="DEBUG" if args.debug else Config.LOG_LEVEL, format=Config.LOG_FORMAT)
    set_global_debug_mode(args.debug or Config.DEBUG_MODE)

    try:
        Config.validate()
    except (ValueError, FileNotFoundError) as e:
        logger.error(str(e))
        return 1
    logger.info(Config.summary())

    store_config = SessionStoreConfig.from_env()
    if args.store:
        store_config.backend = StoreBackend(args.store)
    store = create_session_store(store_config)

    orchestrator = ConversationOrchestrator.from_config(store=store, channel=ConsoleChannel())
    sweeper = RetentionSweeper(store)
    sweeper.start()

    print("Type a message (/cv <url> to send a document, /quit to exit).")
    try:
        while True:
            line = (await asyncio.to_thread(input, "👤 ")).strip()
            if line == "/quit":
                break
            if line == "/sweep":
                result = await sweeper.run_once()
                print(f"Swept {result.removed_count} of {result.scanned_count} sessions")
                continue
            result = await orchestrator.handle_event(build_event(args, line))
            await orchestrator.queue.drain()
            if result.error is not None and args.debug:
                print(json.dumps(result.error.to_dict(), indent=2))
    except (EOFError, KeyboardInterrupt):
        print()
    finally:
        await sweeper.stop()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
