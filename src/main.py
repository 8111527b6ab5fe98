"""Main application entry point."""

import argparse
import logging

import uvicorn
from dotenv import load_dotenv

from src.services.config import load_config
from src.services.logging import setup_server_logging

# Load environment variables
load_dotenv()


def main():
    """Run the billing API under uvicorn."""
    parser = argparse.ArgumentParser(description="Placement billing API")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    args = parser.parse_args()

    config = load_config()
    setup_server_logging(config.log_file)
    logger = logging.getLogger(__name__)

    from src.api.app import app

    logger.info("Starting Uvicorn server on %s:%d...", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")


if __name__ == "__main__":
    main()
