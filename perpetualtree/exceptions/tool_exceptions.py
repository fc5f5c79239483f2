#!/usr/bin/env python3
"""
Exceptions raised while running external phylogenetic programs.
"""

from typing import Any, Dict, List, Optional

from .iteration_exceptions import PerpetualTreeError


class ExternalToolError(PerpetualTreeError):
    """Base class for failures of an external program."""

    def __init__(self, message: str, tool_name: Optional[str] = None,
                 command: Optional[List[str]] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.tool_name = tool_name
        self.command = list(command) if command else None
        if tool_name is not None:
            self.context['tool_name'] = tool_name
        if command:
            self.context['command'] = ' '.join(str(c) for c in command)


class ToolNotFoundError(ExternalToolError):
    """The executable could not be found."""


class ToolExecutionError(ExternalToolError):
    """The program exited with a non-zero return code."""

    def __init__(self, message: str, tool_name: Optional[str] = None,
                 command: Optional[List[str]] = None, returncode: Optional[int] = None,
                 stderr_path=None, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, tool_name, command, context)
        self.returncode = returncode
        self.stderr_path = stderr_path
        if returncode is not None:
            self.context['returncode'] = returncode
        if stderr_path is not None:
            self.context['stderr_path'] = str(stderr_path)


class ToolTimeoutError(ExternalToolError):
    """The program did not finish within its timeout."""

    def __init__(self, message: str, tool_name: Optional[str] = None,
                 command: Optional[List[str]] = None, timeout: Optional[float] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, tool_name, command, context)
        self.timeout = timeout
        if timeout is not None:
            self.context['timeout'] = timeout


class ScoreNotFoundError(ExternalToolError):
    """No line carrying the score marker was found in a result stream."""

    def __init__(self, stream_path, marker: str,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(f"No line matching '{marker}' in {stream_path}", context=context)
        self.stream_path = stream_path
        self.marker = marker
        self.context['stream_path'] = str(stream_path)
        self.context['marker'] = marker
