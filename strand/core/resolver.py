"""
Map plugin specs to archive download URLs and destination directory names.
"""

import re
from typing import Union
from urllib.parse import unquote, urlparse

from strand.models.plugin import ArchivePlugin, GitPlugin, GitProvider, ResolvedPlugin

# Providers resolve HEAD to the repository's default branch.
DEFAULT_REF = "HEAD"

ARCHIVE_URL_TEMPLATES = {
    GitProvider.GITHUB: "https://codeload.github.com/{owner}/{repo}/tar.gz/{ref}",
    GitProvider.GITLAB: "https://gitlab.com/{owner}/{repo}/-/archive/{ref}/{repo}-{ref}.tar.gz",
    GitProvider.BITBUCKET: "https://bitbucket.org/{owner}/{repo}/get/{ref}.tar.gz",
}

# Longest first so ".tar.gz" wins over ".gz"
ARCHIVE_EXTENSIONS = (".tar.gz", ".tar.bz2", ".tar.xz", ".tgz", ".tbz2", ".txz", ".tar")


def _sanitize_name(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]", "-", name).strip("-")


def _archive_dest_name(url: str) -> str:
    parsed = urlparse(url)
    segment = unquote(parsed.path.rstrip("/").rsplit("/", 1)[-1])
    lowered = segment.lower()
    for ext in ARCHIVE_EXTENSIONS:
        if lowered.endswith(ext):
            segment = segment[: -len(ext)]
            break
    name = _sanitize_name(segment)
    if name in ("", ".", ".."):
        name = _sanitize_name(parsed.hostname or "") or "plugin"
    return name


def resolve(spec: Union[GitPlugin, ArchivePlugin]) -> ResolvedPlugin:
    """Resolve a plugin spec. Pure; never touches the network or disk."""
    if isinstance(spec, ArchivePlugin):
        return ResolvedPlugin(archive_url=spec.url, dest_name=_archive_dest_name(spec.url))

    template = ARCHIVE_URL_TEMPLATES[spec.provider]
    url = template.format(owner=spec.owner, repo=spec.repo, ref=spec.ref or DEFAULT_REF)
    dest_name = _sanitize_name(spec.repo)
    if dest_name in ("", ".", ".."):
        dest_name = _sanitize_name(f"{spec.owner}-{spec.repo}") or "plugin"
    return ResolvedPlugin(archive_url=url, dest_name=dest_name)
