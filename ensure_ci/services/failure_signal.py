"""Report the invocation's failure exactly once."""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

log = logging.getLogger(__name__)


def _escape_command_data(message: str) -> str:
    # Workflow command data escaping, as done by @actions/core.
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class FailureSignal:
    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream
        self.message: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.message is not None

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

    def fail(self, message: str) -> None:
        if self.failed:
            log.debug("Failure already signalled, dropping: %s", message)
            return
        self.message = message
        log.error("%s", message)
        stream = self._stream or sys.stdout
        stream.write(f"::error::{_escape_command_data(message)}\n")
        stream.flush()
