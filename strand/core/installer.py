"""
Concurrent plugin installation.

A run clears the plugin directory, then installs every plugin at once under
a concurrency bound. Each plugin is its own failure domain: a download or
extraction error becomes an InstallOutcome for that plugin and never stops
the others.
"""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

import httpx

from strand import __version__
from strand.core.extractor import ArchiveExtractor
from strand.core.fetcher import ArchiveFetcher
from strand.core.resolver import resolve
from strand.lib.errors import DirectorySetupFailed, ExtractFailed, FetchFailed
from strand.models.plugin import ArchivePlugin, GitPlugin, InstallOutcome, OutcomeStatus

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 8
DEFAULT_TIMEOUT = 30.0

Spec = Union[GitPlugin, ArchivePlugin]
OutcomeCallback = Callable[[InstallOutcome], None]


def prepare_plugin_dir(plugin_dir: Path, clean: bool = True) -> None:
    """Make sure ``plugin_dir`` exists, emptying it first when ``clean``.

    Raises:
        DirectorySetupFailed: If the directory cannot be removed or created.
    """
    try:
        if clean:
            if plugin_dir.is_dir() and not plugin_dir.is_symlink():
                shutil.rmtree(plugin_dir)
            elif plugin_dir.exists() or plugin_dir.is_symlink():
                plugin_dir.unlink()
        plugin_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DirectorySetupFailed(plugin_dir, str(e)) from e

    if not plugin_dir.is_dir():
        raise DirectorySetupFailed(plugin_dir, "path exists and is not a directory")


class PluginInstallTask:
    """Resolve, download and unpack one plugin."""

    def __init__(self, fetcher: ArchiveFetcher, extractor: ArchiveExtractor, plugin_dir: Path):
        self.fetcher = fetcher
        self.extractor = extractor
        self.plugin_dir = plugin_dir

    async def run(self, spec: Spec) -> InstallOutcome:
        """Install ``spec``. Never raises for per-plugin failures."""
        resolved = resolve(spec)

        def outcome(status: OutcomeStatus, reason: Optional[str] = None) -> InstallOutcome:
            return InstallOutcome(
                spec=spec, dest_name=resolved.dest_name, status=status, reason=reason
            )

        logger.info(f"Installing {spec} from {resolved.archive_url}")
        try:
            async with self.fetcher.fetch(resolved.archive_url) as stream:
                files = await self.extractor.extract(stream, self.plugin_dir / resolved.dest_name)
        except FetchFailed as e:
            logger.warning(f"Failed to download {spec}: {e}")
            return outcome(OutcomeStatus.FETCH_FAILED, str(e))
        except ExtractFailed as e:
            logger.warning(f"Failed to extract {spec}: {e}")
            return outcome(OutcomeStatus.EXTRACT_FAILED, str(e))
        except Exception as e:
            logger.exception(f"Unexpected error installing {spec}")
            return outcome(OutcomeStatus.EXTRACT_FAILED, f"unexpected error: {e}")

        logger.info(f"Installed {spec} into {resolved.dest_name}/ ({files} files)")
        return outcome(OutcomeStatus.SUCCESS)


class InstallCoordinator:
    """Owns the plugin directory and runs all install tasks.

    Args:
        concurrency: Maximum number of plugins downloading or unpacking at
            the same time.
        timeout: HTTP timeout in seconds (connect, read, write, pool).
        client: Optional pre-configured httpx client. It is not closed by
            the coordinator.
        extractor: Optional extractor, mainly for tests.
    """

    def __init__(
        self,
        concurrency: int = DEFAULT_CONCURRENCY,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
        extractor: Optional[ArchiveExtractor] = None,
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.concurrency = concurrency
        self.timeout = timeout
        self._client = client
        self.extractor = extractor or ArchiveExtractor()

    def _make_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            follow_redirects=True,
            timeout=httpx.Timeout(self.timeout),
            limits=httpx.Limits(max_connections=self.concurrency),
            headers={"User-Agent": f"strand/{__version__}"},
        )

    async def install_all(
        self,
        specs: Sequence[Spec],
        plugin_dir: Path,
        *,
        clean: bool = True,
        on_outcome: Optional[OutcomeCallback] = None,
    ) -> list[InstallOutcome]:
        """Install every spec into ``plugin_dir``.

        Returns one outcome per spec, in input order. ``on_outcome`` is
        called as each plugin finishes, in completion order. Exceptions it
        raises are logged and otherwise ignored.

        Raises:
            DirectorySetupFailed: If ``plugin_dir`` cannot be prepared. No
                plugin is attempted in that case.
        """
        plugin_dir = Path(plugin_dir)
        # Must finish before any task writes into the directory
        prepare_plugin_dir(plugin_dir, clean=clean)

        outcomes: list[Optional[InstallOutcome]] = [None] * len(specs)

        def report(index: int, outcome: InstallOutcome) -> None:
            outcomes[index] = outcome
            if on_outcome is None:
                return
            # Already recorded above, so a callback error loses nothing
            try:
                on_outcome(outcome)
            except Exception:
                logger.exception(f"Outcome callback failed for {outcome.spec}")

        # First spec in input order claims a destination name
        claimed: dict[str, Spec] = {}
        pending: list[tuple[int, Spec]] = []
        for index, spec in enumerate(specs):
            dest_name = resolve(spec).dest_name
            if dest_name in claimed:
                reason = f"destination '{dest_name}/' is already used by {claimed[dest_name]}"
                logger.warning(f"Skipping {spec}: {reason}")
                report(
                    index,
                    InstallOutcome(
                        spec=spec,
                        dest_name=dest_name,
                        status=OutcomeStatus.EXTRACT_FAILED,
                        reason=reason,
                    ),
                )
            else:
                claimed[dest_name] = spec
                pending.append((index, spec))

        if pending:
            client = self._client or self._make_client()
            try:
                task = PluginInstallTask(ArchiveFetcher(client), self.extractor, plugin_dir)
                semaphore = asyncio.Semaphore(self.concurrency)

                async def run_one(index: int, spec: Spec) -> None:
                    async with semaphore:
                        outcome = await task.run(spec)
                    report(index, outcome)

                await asyncio.gather(*(run_one(index, spec) for index, spec in pending))
            finally:
                if self._client is None:
                    await client.aclose()

        results = [o for o in outcomes if o is not None]
        failed = sum(1 for o in results if not o.ok)
        logger.info(f"Installed {len(results) - failed} of {len(results)} plugins into {plugin_dir}")
        return results
