"""
Tablr App entrypoint.

This module provides the CLI entrypoint to launch the Streamlit viewer. It defers all UI
composition to the app.ui package and exists solely to start Streamlit programmatically or
render directly when already running under Streamlit.

Usage:
    - Python execution (hands process to Streamlit):
        python -m app.main data/part-0.parquet data/part-1.parquet

    - Streamlit direct:
        streamlit run src/app/main.py -- data/ --log-level INFO
"""

from __future__ import annotations

import argparse
import os
import subprocess
import sys
from pathlib import Path

from app.ui import streamlit_app


def _parser(add_help: bool = True) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tablr - Parquet Viewer", add_help=add_help)
    parser.add_argument(
        "paths",
        nargs="*",
        help="Parquet files and/or directories opened together as one table.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override the configured log level (DEBUG, INFO, WARNING, ...).",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Console entrypoint that launches Streamlit with the Tablr UI.

    If already executing within a Streamlit server (environment variable
    STREAMLIT_SERVER_PORT is set), this function renders the app directly.
    Otherwise, it execs "python -m streamlit run <this_module>" to leverage
    Streamlit's reloader and argument parsing, passing the paths and options
    through after "--".

    Args:
        argv (list[str] | None): Optional list of CLI arguments. If None,
            sys.argv[1:] is used.

    Examples:
        python -m app.main data/
        streamlit run src/app/main.py -- data/ --log-level DEBUG
    """
    args = list(sys.argv[1:] if argv is None else argv)
    ns = _parser().parse_args(args)

    # If invoked within Streamlit, just render
    if os.environ.get("STREAMLIT_SERVER_PORT"):
        streamlit_app(default_paths=list(ns.paths), log_level=ns.log_level)
        return

    # Otherwise, exec streamlit run on this module to take over the process
    app_path = Path(__file__).resolve()
    cmd = [sys.executable, "-m", "streamlit", "run", str(app_path)]

    passthrough: list[str] = list(ns.paths)
    if ns.log_level:
        passthrough += ["--log-level", ns.log_level]
    if passthrough:
        cmd += ["--"] + passthrough

    try:
        os.execv(sys.executable, cmd)
    except OSError:
        subprocess.run(cmd, check=False)


if __name__ == "__main__":
    # Support: paths and --log-level after '--' when using `streamlit run`
    try:
        ns, _ = _parser(add_help=False).parse_known_args(sys.argv[1:])
        streamlit_app(default_paths=list(ns.paths), log_level=ns.log_level)
    except SystemExit:
        # Fallback to no-arg render
        streamlit_app()
