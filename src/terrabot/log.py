"""Logging setup shared by the CLI and the HTTP server."""

from __future__ import annotations

import logging
import os
from typing import Optional

from rich.logging import RichHandler

FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(level: int | str = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """Attach a rich console handler (and optionally a file handler) to the root logger once."""

    root = logging.getLogger()
    root.setLevel(level)
    if not any(isinstance(handler, RichHandler) for handler in root.handlers):
        console = RichHandler(rich_tracebacks=True, show_path=False)
        console.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        root.addHandler(console)
    if log_file:
        target = os.path.abspath(log_file)
        existing = [
            handler
            for handler in root.handlers
            if isinstance(handler, logging.FileHandler) and handler.baseFilename == target
        ]
        if not existing:
            directory = os.path.dirname(target)
            if directory:
                os.makedirs(directory, exist_ok=True)
            file_handler = logging.FileHandler(target, encoding="utf-8")
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
            root.addHandler(file_handler)
    return root
