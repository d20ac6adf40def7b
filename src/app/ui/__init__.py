"""
Tablr App UI package.

Modules:
    - app: Streamlit application orchestrator (streamlit_app).
    - helpers: Pure helpers (path parsing, byte formatting, paging, display blocks).

Usage:
    from app.ui import streamlit_app
    streamlit_app(default_paths=["data/"])
"""

from __future__ import annotations

from .app import streamlit_app

__all__ = [
    "streamlit_app",
]
