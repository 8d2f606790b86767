"""
asgi.py -- Process entry point for ServiceHub.

Loads Settings from the environment (a missing JWT_SECRET aborts startup
here) and builds the app.

Run with:  uvicorn asgi:app --reload
"""

from api.main import create_app
from core.config import get_settings

app = create_app(get_settings())
