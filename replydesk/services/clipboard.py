"""
Clipboard helper with transient copy status.

Copying writes to the host clipboard (pbcopy on macOS, xclip on Linux). The status
goes from inactive to copied or failed and falls back to inactive after a short
timeout, which is what the views show next to their copy buttons.
"""

import asyncio
import logging
import subprocess
import sys
from typing import Callable, Optional

from replydesk.config.constants import COPY_STATUS_RESET, LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


def write_system_clipboard(text: str) -> None:
    """
    Write text to the system clipboard.

    Raises:
        OSError: if no clipboard command is available
        subprocess.CalledProcessError: if the clipboard command fails
    """
    if sys.platform == "darwin":
        command = ["pbcopy"]
    elif sys.platform.startswith("linux"):
        command = ["xclip", "-selection", "clipboard"]
    else:
        raise OSError(f"Clipboard not supported on {sys.platform}")
    subprocess.run(command, input=text.encode("utf-8"), check=True)


class Clipboard:
    """Copies text and tracks the outcome of the last copy."""

    def __init__(
        self,
        writer: Optional[Callable[[str], None]] = None,
        reset_after: float = COPY_STATUS_RESET,
    ):
        self.writer = writer or write_system_clipboard
        self.reset_after = reset_after
        self.status = "inactive"
        self._reset_handle: Optional[asyncio.TimerHandle] = None

    async def copy(self, text: str) -> str:
        """
        Copy text to the clipboard.

        Returns:
            The new status, "copied" or "failed"
        """
        try:
            await asyncio.to_thread(self.writer, text)
            self.status = "copied"
        except Exception as e:
            logger.warning(f"Could not copy to clipboard: {e}")
            self.status = "failed"

        if self._reset_handle is not None:
            self._reset_handle.cancel()
        self._reset_handle = asyncio.get_running_loop().call_later(self.reset_after, self._reset)
        return self.status

    def _reset(self) -> None:
        self.status = "inactive"
        self._reset_handle = None
