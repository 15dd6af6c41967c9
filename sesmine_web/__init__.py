"""HTTP API for the SESMine access layer"""

from .main import create_app

__all__ = ["create_app"]
