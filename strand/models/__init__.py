"""
Pydantic models for strand.
"""

from strand.models.plugin import (
    ArchivePlugin,
    GitPlugin,
    GitProvider,
    InstallOutcome,
    OutcomeStatus,
    PluginSpec,
    ResolvedPlugin,
    parse_plugin,
    parse_plugin_entry,
)

__all__ = [
    "ArchivePlugin",
    "GitPlugin",
    "GitProvider",
    "InstallOutcome",
    "OutcomeStatus",
    "PluginSpec",
    "ResolvedPlugin",
    "parse_plugin",
    "parse_plugin_entry",
]
