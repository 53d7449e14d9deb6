"""
Input validation helpers.
"""
import re
from typing import Any

_HANDLE_PATTERN = re.compile(r"[A-Za-z][A-Za-z0-9_]*")

HANDLE_MIN_LENGTH = 3
HANDLE_MAX_LENGTH = 20


def is_valid_handle(handle: Any) -> bool:
    """
    Check whether a value looks like a Baekjoon / solved.ac handle.

    Handles are 3-20 ASCII letters, digits or underscores, start with a
    letter, never end with an underscore and never contain "__".

    Args:
        handle: Candidate handle

    Returns:
        True if the handle is well-formed
    """
    if not isinstance(handle, str):
        return False
    if not HANDLE_MIN_LENGTH <= len(handle) <= HANDLE_MAX_LENGTH:
        return False
    if not _HANDLE_PATTERN.fullmatch(handle):
        return False
    if "__" in handle or handle.endswith("_"):
        return False
    return True
