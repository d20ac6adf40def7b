"""
Top-level Streamlit app package.

This package hosts the interactive Tablr grid (Streamlit), decoupled from the tablr.*
library modules. The library owns catalogs, windows, caching and scrolling; the Streamlit
shell owns layout, row paging controls and user input.

CLI entrypoint (configured in pyproject.toml):
    tablr-app = app.main:main
"""

from __future__ import annotations
