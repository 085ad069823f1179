"""
Main entry point for the Boris chat server.

This module provides the entry point for running the chat server.
Can be called with: python -m boris_chat
"""

import argparse
import logging

import uvicorn

from .log import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Boris Chat - streaming chat with a local model server"
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Interface to bind (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the server on (default: 8000)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    return parser


def main(argv=None):
    """Main entry point for the Boris chat server."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    # Import after logging is configured so module-level setup logs are kept
    from .app import app

    logger = logging.getLogger(__name__)
    logger.info("Starting chat server...")
    logger.info(f"Chat endpoint available at http://{args.host}:{args.port}/api/chat")

    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
