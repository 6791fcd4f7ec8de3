"""
FastAPI/ASGI application entrypoint.

Build and configure the ASGI app from config.json + env.
Run with: uvicorn backend_feerelay.api_server.app:app --host 0.0.0.0 --port 8000
"""

from backend_feerelay.api_server.server import create_app

app = create_app()

__all__ = ["app"]
