"""ASGI entrypoint: ``uvicorn riskprofile.app:app``."""

from riskprofile.api.main import create_app

app = create_app()
