#!/usr/bin/env python3
"""
Exceptions raised by file operations on tree bundles and round artifacts.
"""

from typing import Any, Dict, Optional

from .iteration_exceptions import PerpetualTreeError


class FileOperationError(PerpetualTreeError):
    """A file could not be read or written."""

    def __init__(self, message: str, file_path=None, operation: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.file_path = file_path
        self.operation = operation
        if file_path is not None:
            self.context['file_path'] = str(file_path)
        if operation is not None:
            self.context['operation'] = operation


class TreeParsingError(FileOperationError):
    """A Newick tree file could not be parsed."""

    def __init__(self, message: str, file_path=None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, file_path, 'parse_tree', context)


class BunchIncompleteError(FileOperationError):
    """A best-bunch directory has no completion marker or an unreadable manifest."""

    def __init__(self, message: str, file_path=None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, file_path, 'load_bunch', context)
