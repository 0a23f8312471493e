"""
Core install pipeline: resolve, fetch, extract.
"""

from strand.core.extractor import ArchiveExtractor
from strand.core.fetcher import ArchiveFetcher
from strand.core.installer import InstallCoordinator, PluginInstallTask
from strand.core.resolver import resolve

__all__ = [
    "ArchiveExtractor",
    "ArchiveFetcher",
    "InstallCoordinator",
    "PluginInstallTask",
    "resolve",
]
