#!/usr/bin/env python3
"""
Progress logging sink for perpetualtree.

The coordinator reports through an explicitly constructed ProgressLogger
instead of printing. The sink owns presentation: console glyphs, colours and
the overwriting progress line. Every message is also forwarded to the
`logging` tree so that the iteration log file receives it.
"""

import sys
import logging
from typing import Optional, List

logger = logging.getLogger(__name__)

GREEN = "\033[32m"
RED = "\033[31m"
RESET = "\033[0m"


class ProgressLogger:
    """
    Console and log-file sink with info, warning, error and success levels.

    Uses carriage return (\\r) to overwrite candidate progress lines so that a
    round with many candidates stays readable on the console.
    """

    def __init__(self, show_progress: bool = True, verbose: bool = False,
                 use_color: Optional[bool] = None, log: Optional[logging.Logger] = None):
        """
        Initialize progress logger.

        Args:
            show_progress: Whether to show dynamic progress updates
            verbose: Whether to show detailed logging (disables progress overwriting)
            use_color: Colour success and error lines (default: only on a TTY)
            log: Logger receiving every message (default: this module's logger)
        """
        self.show_progress = show_progress and not verbose
        self.verbose = verbose
        if use_color is None:
            use_color = sys.stdout.isatty()
        self.use_color = use_color
        self.log = log or logger
        self.current_line = ""
        self.milestones: List[str] = []

    def _clear_line(self):
        if self.current_line:
            sys.stdout.write('\r' + ' ' * len(self.current_line) + '\r')
            self.current_line = ""

    def _paint(self, text: str, color: str) -> str:
        return f"{color}{text}{RESET}" if self.use_color else text

    def progress(self, message: str, current: Optional[int] = None,
                 total: Optional[int] = None):
        """
        Show an overwriting progress message with optional counter.

        Args:
            message: Progress message to display
            current: Current item number (1-based)
            total: Total number of items
        """
        if current is not None and total is not None:
            progress_msg = f"{message} [{current}/{total}]"
        else:
            progress_msg = message
        self.log.debug(progress_msg)

        if not self.show_progress:
            return

        self._clear_line()
        sys.stdout.write(progress_msg)
        sys.stdout.flush()
        self.current_line = progress_msg

    def info(self, message: str):
        """Show an informational message."""
        self._clear_line()
        self.log.info(message)
        print(message)

    def warning(self, message: str):
        """Show a warning; processing continues."""
        self._clear_line()
        self.log.warning(message)
        print(f"⚠️  {message}")

    def error(self, message: str):
        """Show an error message."""
        self._clear_line()
        self.log.error(message)
        print(self._paint(f"❌ {message}", RED))

    def success(self, message: str):
        """Show a milestone line, visually distinct from plain info."""
        self._clear_line()
        self.log.info(message)
        print(self._paint(f"✓ {message}", GREEN))
        self.milestones.append(message)

    def section_header(self, title: str):
        """
        Display a section header.

        Args:
            title: Section title to display
        """
        self._clear_line()
        self.log.info(title)
        print(f"\n{title}")
        print("-" * len(title))
