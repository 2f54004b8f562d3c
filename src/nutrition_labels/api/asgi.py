"""ASGI entrypoint for the nutrition labels API."""

from nutrition_labels.api.app import create_app
from nutrition_labels.containers import build_container

app = create_app(build_container())
