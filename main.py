#!/usr/bin/env python3
"""
============================================================================
Project Sim Steward v1.0.0
Server Launcher - Incident Verdict Service
============================================================================

Reliability Level: STANDARD
Side Effects: Binds the HTTP listener

Starts the FastAPI application under uvicorn. Host, port and log level may
be given on the command line or through the environment.

ENVIRONMENT VARIABLES:
    - STEWARD_HOST: Bind address (default: 0.0.0.0)
    - STEWARD_PORT: Bind port (default: 8080)
    - STEWARD_LOG_LEVEL: Log level (default: info)

USAGE:
    python main.py
    python main.py --port 9000 --verbose

============================================================================
"""

import argparse
import logging
import os

import uvicorn
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger("SIM_STEWARD")


# =============================================================================
# Constants
# =============================================================================

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
DEFAULT_LOG_LEVEL = "info"


# =============================================================================
# CLI Entry Point
# =============================================================================

def main():
    """CLI entry point for the verdict service."""
    parser = argparse.ArgumentParser(
        description="Run the Sim Steward incident verdict service"
    )
    parser.add_argument(
        "--host",
        type=str,
        default=os.getenv("STEWARD_HOST", DEFAULT_HOST),
        help=f"Bind address (default: {DEFAULT_HOST})"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("STEWARD_PORT", str(DEFAULT_PORT))),
        help=f"Bind port (default: {DEFAULT_PORT})"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    log_level = "debug" if args.verbose else os.getenv("STEWARD_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    logger.info(f"Starting Sim Steward on {args.host}:{args.port}")
    uvicorn.run("app.main:app", host=args.host, port=args.port, log_level=log_level)


if __name__ == "__main__":
    main()
