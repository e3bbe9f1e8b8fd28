"""
Utility functions for file system operations and filename sanitization.
"""

from __future__ import annotations

import re
from pathlib import Path

# Pattern to match characters that are not safe for filesystem paths
# Allows: alphanumeric characters, dots, underscores, and hyphens
SANITIZE_PATTERN = re.compile(r"[^a-zA-Z0-9._-]+")


def sanitize_filename(filename: str, fallback: str = "file", default_suffix: str = "") -> str:
    """
    Generate a filesystem-safe file name from user input.

    Directory components are discarded, unsafe characters become hyphens
    and the extension is lowercased.

    Args:
        filename: The original file name (may include a path)
        fallback: Stem to use when nothing safe remains
        default_suffix: Extension to use when the name has none

    Example:
        >>> sanitize_filename("../My Signature!.PNG")
        'My-Signature.png'
        >>> sanitize_filename("@#$", default_suffix=".png")
        'file.png'
    """
    path = Path(filename.replace("\\", "/")).name
    stem, suffix = Path(path).stem, Path(path).suffix.lower()
    safe_stem = SANITIZE_PATTERN.sub("-", stem).strip("-_.") or fallback
    safe_suffix = SANITIZE_PATTERN.sub("", suffix) or default_suffix.lower()
    return f"{safe_stem}{safe_suffix}"


def ensure_directory(path: Path) -> Path:
    """
    Create a directory if it doesn't exist, including parent directories.

    Args:
        path: The directory path to create

    Returns:
        The same path object for chaining
    """
    path.mkdir(parents=True, exist_ok=True)
    return path
