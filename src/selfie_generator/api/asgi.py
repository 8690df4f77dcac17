"""ASGI entrypoint for the selfie generator API."""

from selfie_generator.api.app import create_app
from selfie_generator.containers import build_container

app = create_app(build_container())
