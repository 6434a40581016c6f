"""FastAPI surface for chat and multi-agent tasks."""

from crytonix.api.server import create_app

__all__ = ["create_app"]
