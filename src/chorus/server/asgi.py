"""ASGI entry point for running the chorus server via the uvicorn CLI.

    python -m uvicorn chorus.server.asgi:app --host ... --port ...
"""

from chorus.config.loader import load_config
from chorus.server.app import create_app

config = load_config()
app = create_app(config)
