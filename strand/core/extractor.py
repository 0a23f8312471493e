"""
Archive extraction.

Provider archives wrap the repository in one top-level directory
(``vim-surround-master/``). The extractor strips it so plugin files land
directly in the destination directory:

    vim-surround-master/plugin/surround.vim  ->  <dest>/plugin/surround.vim

Extraction is all-or-nothing: members are unpacked into a hidden staging
directory next to the destination, which is renamed into place only after
the whole archive has been read.
"""

import asyncio
import gzip
import logging
import lzma
import os
import shutil
import tarfile
import tempfile
import zlib
from pathlib import Path, PurePosixPath
from typing import AsyncIterator, BinaryIO, Optional

from strand.lib.errors import ExtractFailed

logger = logging.getLogger(__name__)

# Archives larger than this are spooled to disk instead of memory.
SPOOL_MAX_BYTES = 8 * 1024 * 1024

FILE_MODE = 0o644
EXECUTABLE_MODE = 0o755
DIR_MODE = 0o755


def _strip_wrapper(member: tarfile.TarInfo) -> Optional[PurePosixPath]:
    """Return the member path without its wrapper directory.

    Returns None for the wrapper directory entry itself.

    Raises:
        ExtractFailed: If the path is absolute, contains '..', or has no
            wrapper component to strip.
    """
    name = member.name
    if name.startswith("/") or PurePosixPath(name).is_absolute():
        raise ExtractFailed(f"archive entry has an absolute path: {name}")

    parts = [p for p in PurePosixPath(name).parts if p not in ("", ".")]
    if ".." in parts:
        raise ExtractFailed(f"archive entry escapes the destination: {name}")
    if not parts:
        raise ExtractFailed(f"archive entry has an empty path: {name!r}")
    if len(parts) == 1:
        if member.isdir():
            return None
        raise ExtractFailed(f"archive entry is outside a wrapper directory: {name}")
    return PurePosixPath(*parts[1:])


def unpack_archive(fileobj: BinaryIO, dest_dir: Path) -> int:
    """Unpack a (compressed) tar archive into ``dest_dir``.

    Any existing ``dest_dir`` is replaced once the archive has been fully
    unpacked. Returns the number of regular files written.

    Raises:
        ExtractFailed: On malformed or truncated input, unsafe entries, or
            filesystem errors. ``dest_dir`` is left untouched in that case.
    """
    dest_dir = Path(dest_dir)
    try:
        staging = Path(tempfile.mkdtemp(dir=dest_dir.parent, prefix=f".{dest_dir.name}-"))
    except OSError as e:
        raise ExtractFailed(f"cannot create staging directory: {e}") from e

    try:
        files = _unpack_members(fileobj, staging)
        staging.chmod(DIR_MODE)
        if dest_dir.is_dir() and not dest_dir.is_symlink():
            shutil.rmtree(dest_dir)
        elif dest_dir.exists() or dest_dir.is_symlink():
            dest_dir.unlink()
        os.rename(staging, dest_dir)
    except (tarfile.TarError, EOFError, zlib.error, gzip.BadGzipFile, lzma.LZMAError) as e:
        raise ExtractFailed(_malformed(e)) from e
    except OSError as e:
        # bz2 reports corrupt data as an OSError with no errno
        if e.errno is None:
            raise ExtractFailed(_malformed(e)) from e
        raise ExtractFailed(f"cannot write plugin files: {e}") from e
    finally:
        # Still present only if something went wrong
        if staging.exists():
            shutil.rmtree(staging, ignore_errors=True)

    return files


def _malformed(e: BaseException) -> str:
    return f"malformed archive: {str(e) or type(e).__name__}"


def _unpack_members(fileobj: BinaryIO, root: Path) -> int:
    files = 0
    with tarfile.open(fileobj=fileobj, mode="r:*") as archive:
        for member in archive:
            relative = _strip_wrapper(member)
            if relative is None:
                continue
            target = root / relative

            if member.isdir():
                target.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
            elif member.isfile():
                target.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
                source = archive.extractfile(member)
                if source is None:
                    raise ExtractFailed(f"cannot read archive entry: {member.name}")
                with source, open(target, "wb") as out:
                    shutil.copyfileobj(source, out)
                target.chmod(EXECUTABLE_MODE if member.mode & 0o111 else FILE_MODE)
                files += 1
            elif member.issym() or member.islnk():
                raise ExtractFailed(
                    f"archive contains a link, which is not allowed: "
                    f"{member.name} -> {member.linkname}"
                )
            else:
                raise ExtractFailed(f"archive contains an unsupported entry type: {member.name}")
    return files


class ArchiveExtractor:
    """Consumes an archive byte stream and unpacks it into a directory."""

    def __init__(self, spool_max_bytes: int = SPOOL_MAX_BYTES):
        self._spool_max_bytes = spool_max_bytes

    async def extract(self, stream: AsyncIterator[bytes], dest_dir: Path) -> int:
        """Read ``stream`` to the end, then unpack it into ``dest_dir``.

        The stream is spooled to a temporary file so the download finishes
        before unpacking starts. Disk writes and unpacking run in a worker
        thread.
        """
        with tempfile.SpooledTemporaryFile(max_size=self._spool_max_bytes) as spool:
            size = 0
            async for chunk in stream:
                size += len(chunk)
                # Past the limit the spool lives on disk
                if size > self._spool_max_bytes:
                    await asyncio.to_thread(spool.write, chunk)
                else:
                    spool.write(chunk)
            if size == 0:
                raise ExtractFailed("downloaded archive is empty")
            spool.seek(0)
            logger.debug(f"Unpacking {size} bytes into {dest_dir}")
            return await asyncio.to_thread(unpack_archive, spool, dest_dir)
