"""
asgi.py -- ASGI entry point for the compliance report API.

Process managers and uvicorn import the application from here so the import
path stays stable if api/main.py is ever split up.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import app

__all__ = ["app"]
