"""
Run script for starting the salon receptionist credential backend.

Usage:
    python run.py [--port PORT] [--host HOST] [--log-level LEVEL]
"""

import argparse
import os
import sys

import uvicorn

from receptionist.config.logging_config import configure_logging

# Configure logging
logger = configure_logging()


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Start the salon receptionist credential backend"
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
    return parser.parse_args(argv)


def missing_configuration():
    """Names of provider settings that are not set."""
    required = ("OPENAI_API_KEY", "ELEVENLABS_AGENT_ID", "ELEVENLABS_API_KEY")
    return [name for name in required if not os.getenv(name)]


def main(argv=None):
    """Main entry point for starting the server."""
    args = parse_args(argv)

    missing = missing_configuration()
    if len(missing) == 3:
        logger.error("No provider credentials configured")
        print(f"Error: set at least one provider's credentials ({', '.join(missing)})")
        sys.exit(1)
    for name in missing:
        logger.warning(f"{name} not set; the matching provider will be unavailable")

    logger.info(f"Starting server on http://{args.host}:{args.port}")
    logger.info(f"Log level: {args.log_level}")

    uvicorn.run(
        "receptionist.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        http="h11",
        reload=os.getenv("ENV", "production").lower() == "development",
    )


if __name__ == "__main__":
    main()
