"""ASGI entrypoint for the EventLens API."""

from eventlens.api.app import create_app
from eventlens.containers import build_container

app = create_app(build_container())
