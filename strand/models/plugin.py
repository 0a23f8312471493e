"""
Plugin models.

A plugin is declared either as a Git repository on a hosting provider or as
a direct archive URL:

    tpope/vim-surround                  # GitHub, default branch
    gitlab@someone/some-plugin:v1.2     # GitLab, tag v1.2
    https://example.com/plugin.tar.gz   # archive URL
"""

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

from strand.lib.errors import PluginParseError


class GitProvider(str, Enum):
    """Git hosting providers that serve repository archives."""

    GITHUB = "github"
    GITLAB = "gitlab"
    BITBUCKET = "bitbucket"


class GitPlugin(BaseModel):
    """A plugin fetched as an archive of a Git repository."""

    kind: Literal["git"] = "git"
    provider: GitProvider = GitProvider.GITHUB
    owner: str = Field(min_length=1)
    repo: str = Field(min_length=1)
    ref: Optional[str] = None  # Branch, tag or commit; None means default branch

    model_config = {"frozen": True}

    def __str__(self) -> str:
        text = f"{self.owner}/{self.repo}"
        if self.provider != GitProvider.GITHUB:
            text = f"{self.provider.value}@{text}"
        if self.ref:
            text = f"{text}:{self.ref}"
        return text


class ArchivePlugin(BaseModel):
    """A plugin fetched from a direct archive URL."""

    kind: Literal["archive"] = "archive"
    url: str

    model_config = {"frozen": True}

    @field_validator("url")
    @classmethod
    def _check_url(cls, v: str) -> str:
        if not _is_archive_url(v):
            raise ValueError(f"not an absolute http(s) URL: {v}")
        return v

    def __str__(self) -> str:
        return self.url


PluginSpec = Annotated[Union[GitPlugin, ArchivePlugin], Field(discriminator="kind")]


class ResolvedPlugin(BaseModel):
    """Where to download a plugin from and which directory it goes into."""

    archive_url: str
    dest_name: str


class OutcomeStatus(str, Enum):
    """Terminal state of one plugin install."""

    SUCCESS = "success"
    FETCH_FAILED = "fetch_failed"
    EXTRACT_FAILED = "extract_failed"


class InstallOutcome(BaseModel):
    """Result of installing a single plugin."""

    spec: PluginSpec
    dest_name: str
    status: OutcomeStatus
    reason: Optional[str] = None  # Set for failures

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _is_archive_url(text: str) -> bool:
    parsed = urlparse(text)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def parse_git_plugin(text: str) -> GitPlugin:
    """Parse ``[provider@]owner/repo[:ref]`` into a GitPlugin."""
    rest = text.strip()

    provider = GitProvider.GITHUB
    if "@" in rest:
        provider_name, rest = rest.split("@", 1)
        try:
            provider = GitProvider(provider_name.lower())
        except ValueError:
            raise PluginParseError(
                text,
                f"Git provider '{provider_name}' not recognised, "
                "try 'github', 'gitlab' or 'bitbucket' instead",
            ) from None

    if "/" not in rest:
        raise PluginParseError(text, "no user was found, expected 'owner/repo'")
    owner, rest = rest.split("/", 1)

    ref = None
    if ":" in rest:
        rest, ref = rest.split(":", 1)
        if not ref:
            raise PluginParseError(text, "empty Git reference after ':'")

    if not owner:
        raise PluginParseError(text, "empty owner")
    if not rest or "/" in rest:
        raise PluginParseError(text, "expected a single repository name after the owner")

    return GitPlugin(provider=provider, owner=owner, repo=rest, ref=ref)


def parse_plugin(text: str) -> Union[GitPlugin, ArchivePlugin]:
    """Parse a plugin spec string. URLs become archive plugins."""
    text = text.strip()
    if _is_archive_url(text):
        return ArchivePlugin(url=text)
    return parse_git_plugin(text)


def parse_plugin_entry(entry: Any) -> Union[GitPlugin, ArchivePlugin]:
    """Parse one entry of the ``plugins`` list in config.yaml.

    Accepts a spec string, the tagged form (``{Git: owner/repo}`` or
    ``{Archive: url}``), or an explicit mapping of model fields.
    """
    if isinstance(entry, (GitPlugin, ArchivePlugin)):
        return entry
    if isinstance(entry, str):
        return parse_plugin(entry)
    if isinstance(entry, dict):
        if len(entry) == 1:
            tag, value = next(iter(entry.items()))
            tag = str(tag).lower()
            if tag == "git" and isinstance(value, str):
                return parse_git_plugin(value)
            if tag == "archive" and isinstance(value, str):
                if not _is_archive_url(value.strip()):
                    raise PluginParseError(value, "not an absolute http(s) URL")
                return ArchivePlugin(url=value.strip())
        if "url" in entry:
            return ArchivePlugin(**entry)
        if "repo" in entry:
            return GitPlugin(**entry)
    raise PluginParseError(str(entry), "expected a plugin string or a Git/Archive mapping")
