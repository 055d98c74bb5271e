"""
ASGI entry point.

Used by uvicorn (see server/main.py) or any other ASGI server.
Environment is read from .env before the config is built.
"""

from dotenv import load_dotenv

load_dotenv()

from server.app import create_app  # pylint: disable=wrong-import-position

app = create_app()
