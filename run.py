"""
Run script for starting the ReplyDesk server.

This script configures and starts the FastAPI server that backs the messaging
assistant. Without a Gemini API key the server still starts and answers with
mock responses.

Usage:
    python run.py [--port PORT] [--host HOST] [--log-level LEVEL]
"""

import argparse
import os
import sys
from pathlib import Path

import dotenv
import uvicorn

sys.path.append(str(Path(__file__).parent))

from replydesk.config.logging_config import configure_logging

# Load environment variables from .env file if it exists
dotenv.load_dotenv(Path(__file__).parent / ".env")

# Configure logging
logger = configure_logging()


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Start the ReplyDesk messaging assistant server"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", "8000")),
        help="Port to run the server on (default: 8000 or PORT env var)",
    )
    parser.add_argument(
        "--host",
        default=os.getenv("HOST", "0.0.0.0"),
        help="Host to bind the server to (default: 0.0.0.0 or HOST env var)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO or LOG_LEVEL env var)",
    )
    return parser.parse_args()


def main():
    """Main entry point for starting the server."""
    args = parse_args()
    # The app module and a reload worker configure logging from the environment
    os.environ["LOG_LEVEL"] = args.log_level
    configure_logging(args.log_level)

    api_key_configured = bool(os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY"))
    if not api_key_configured:
        logger.warning("GEMINI_API_KEY environment variable not set, running with mock responses")

    logger.info(f"Starting server on http://{args.host}:{args.port}")
    logger.info(f"Log level: {args.log_level}")
    logger.info(f"Gemini API key configured: {api_key_configured}")

    uvicorn.run(
        "replydesk.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        http="h11",
        # Disable access logs, we have our own logging
        access_log=False,
        # Reload on code changes during development
        reload=os.getenv("ENV", "production").lower() == "development",
    )


if __name__ == "__main__":
    main()
