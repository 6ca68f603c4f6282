"""CLI entry point for the booking assistant.

A terminal chat loop for testing and development.  For production, use the
FastAPI server (booking_assistant/server.py).

Usage:
    uv run python -m booking_assistant.main            # normal mode (quiet)
    uv run python -m booking_assistant.main --debug    # debug mode (shows tool calls)
"""

from __future__ import annotations

import argparse
import logging

from dotenv import load_dotenv

from booking_assistant.agent import create_booking_assistant

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )

    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger("booking_assistant").setLevel(logging.DEBUG if debug else logging.INFO)


def main():
    """Run the interactive CLI chat loop."""
    parser = argparse.ArgumentParser(description="Booking assistant CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including tool calls",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    print("\n" + "=" * 60)
    print("  Booking Assistant - CLI Chat")
    print("=" * 60)
    print("  Type your message and press Enter.")
    print("  Commands: 'quit' to exit, 'new' for a new session.")
    print("=" * 60 + "\n")

    assistant = create_booking_assistant()
    session = assistant.create_session()
    logger.info("Started new session: %s", session.session_id)

    while True:
        try:
            user_input = input("You: ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\nGoodbye!")
            break

        if not user_input:
            continue

        if user_input.lower() in ("exit", "quit", "q"):
            print("\nGoodbye! Have a great day!")
            break

        if user_input.lower() == "new":
            session = assistant.create_session()
            print(f"\n>> New session started: {session.session_id[:8]}...\n")
            continue

        try:
            reply = assistant.get_completion(session, user_input)
            print(f"\nAssistant: {reply}\n")

        except KeyboardInterrupt:
            print("\n\nGoodbye!")
            break
        except Exception as e:
            logger.exception("Error processing message")
            print(f"\nAssistant: I'm sorry, something went wrong: {e}")
            print("     Please try again or type 'new' to start a fresh session.\n")


if __name__ == "__main__":
    main()
