#!/usr/bin/env python3
"""
Main entry point for the ISP Finder API.

Usage:
    python main.py

Requirements:
    1. pip install -e .
    2. Optionally set environment variables (see .env.example)
"""

import sys

def main():
    """Main entry point for the application."""
    # Validate configuration before starting the server
    try:
        from isp_finder.config import settings
        settings.validate_required_vars()
    except ValueError as e:
        print(f"ERROR: {e}")
        print("Please check the .env.example file for configuration options.")
        sys.exit(1)

    # Import and run the app
    try:
        import uvicorn

        print("Starting ISP Finder API...")
        print("API will be available at: http://localhost:8000")
        print("API documentation at: http://localhost:8000/docs")

        uvicorn.run(
            "isp_finder.main:app",
            host="0.0.0.0",
            port=8000,
            reload=False,
            log_level=settings.LOG_LEVEL.lower()
        )
    except ImportError as e:
        print("ERROR: Missing dependencies. Please run: pip install -e .")
        print(f"Import error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
