"""HTTP API for the risk profile engine."""

from riskprofile.api.main import create_app

__all__ = ["create_app"]
