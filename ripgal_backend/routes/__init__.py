"""
HTTP routes for the catalog engine.
Importing this package is side-effect free; route registration is explicit.
"""
from .registry import create_app, register_routes, setup_app

__all__ = ["create_app", "register_routes", "setup_app"]
