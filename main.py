"""Main entry point for the Nexus completion gateway."""

import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from nexus.api import create_fastapi_app
from nexus.config import DEFAULT_API_HOST, DEFAULT_API_PORT
from nexus.logging_config import setup_logging


def main():
    """Run the gateway."""
    project_root = Path(__file__).resolve().parent
    load_dotenv(project_root / ".env")
    setup_logging()

    # Get configuration from environment
    api_host = os.getenv("API_HOST", DEFAULT_API_HOST)
    api_port = int(os.getenv("API_PORT", str(DEFAULT_API_PORT)))

    # Create FastAPI app
    app = create_fastapi_app()

    # Run with uvicorn
    uvicorn.run(
        app,
        host=api_host,
        port=api_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
