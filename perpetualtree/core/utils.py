#!/usr/bin/env python3
"""
Utility functions for perpetualtree.

Common utility functions used across the perpetualtree modules.
"""

import logging
from pathlib import Path
from typing import Optional, Union


def setup_logging(debug_mode: bool = False, log_file: Optional[Union[str, Path]] = None) -> logging.Logger:
    """
    Setup structured logging for perpetualtree with console and file handlers.

    Args:
        debug_mode: Enable debug logging
        log_file: Optional log file path (the iteration log)
    """
    package_logger = logging.getLogger("perpetualtree")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.DEBUG if debug_mode else logging.INFO)
    package_logger.propagate = False

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        file_handler.setFormatter(file_formatter)
        file_handler.setLevel(logging.DEBUG)
        package_logger.addHandler(file_handler)

    # The progress sink prints user-facing lines itself; the raw record stream
    # only goes to the console in debug mode
    if debug_mode:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter('%(levelname)s %(name)s: %(message)s'))
        console_handler.setLevel(logging.DEBUG)
        package_logger.addHandler(console_handler)
    elif not log_file:
        package_logger.addHandler(logging.NullHandler())
    return package_logger


def get_display_path(path: Union[str, Path]) -> str:
    """Get a display-friendly path representation."""
    path_obj = Path(path)

    if path_obj.is_absolute():
        try:
            rel_path = path_obj.relative_to(Path.cwd())
            if len(str(rel_path)) < len(str(path_obj)) and not str(rel_path).startswith('../../../'):
                return str(rel_path)
        except ValueError:
            pass  # Path is not relative to current directory

    return str(path_obj)


def derive_seed(seed_base: int, update_id: int, slot: int, round_stride: int) -> int:
    """Seed for candidate slot `slot` of round `update_id`.

    Unique within a round for any slot count, and across rounds while a
    round stays below `round_stride` candidates.
    """
    return seed_base + update_id * round_stride + slot
