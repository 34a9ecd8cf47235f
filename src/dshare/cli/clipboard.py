"""Clipboard helper for copying share links.

Uses pyperclip for cross-platform clipboard access.
"""

from __future__ import annotations

import pyperclip


def copy_to_clipboard(text: str) -> bool:
    """Copy text to the system clipboard.

    Returns False when no clipboard mechanism is available, so a headless
    run still prints the link.
    """
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException:
        return False
    return True
