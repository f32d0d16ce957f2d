"""Expose the application factory at package level.

Provide convenient access to :func:`beacon_auth.factory.create_app` so callers
can ``from beacon_auth import create_app`` (and ``flask --app beacon_auth``).
"""

from __future__ import annotations

from .factory import create_app

__all__ = ["create_app"]
