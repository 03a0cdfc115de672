#!/usr/bin/env python3
"""
Package logger. Messages go to stdout as "[LEVEL] message"; set_verbose
switches per-node detail on and off.
"""

import logging
import sys

logger = logging.getLogger("timetable_csp")
logger.setLevel(logging.INFO)

# Prevent duplicate handlers if imported multiple times
if not logger.handlers:
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_formatter = logging.Formatter("[%(levelname)s] %(message)s")
    stream_handler.setFormatter(stream_formatter)
    logger.addHandler(stream_handler)


def get_logger(name: str) -> logging.Logger:
    """Return a child of the package logger, e.g. get_logger('engine')."""
    return logger.getChild(name)


def set_verbose(verbose: bool):
    """Switch the package logger between INFO and DEBUG output."""
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
