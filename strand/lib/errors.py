"""
Error types raised while installing plugins.

FetchFailed and ExtractFailed are per-plugin failures: the installer turns
them into InstallOutcome values and never lets them abort sibling installs.
DirectorySetupFailed is the only error that aborts a whole run.
"""

from pathlib import Path


class StrandError(Exception):
    """Base class for all strand errors."""


class PluginParseError(StrandError, ValueError):
    """A plugin spec string could not be parsed."""

    def __init__(self, text: str, reason: str):
        self.text = text
        self.reason = reason
        super().__init__(f"Invalid plugin '{text}': {reason}")


class FetchFailed(StrandError):
    """Downloading an archive failed (HTTP status or transport error)."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"{reason} ({url})")


class ExtractFailed(StrandError):
    """Unpacking an archive failed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class DirectorySetupFailed(StrandError):
    """The plugin directory could not be cleared or created."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot prepare plugin directory {path}: {reason}")
