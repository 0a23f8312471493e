"""
Pytest configuration and fixtures.
"""

import io
import logging
import os
import tarfile
import tempfile
from pathlib import Path
from typing import Callable, Optional, Union

import pytest

# Keep tests away from the user's real config
os.environ["STRAND_CONFIG"] = str(Path(tempfile.mkdtemp(prefix="strand-test-")) / "config.yaml")
os.environ.pop("STRAND_PLUGIN_DIR", None)

FileContent = Union[str, bytes, tuple[Union[str, bytes], int]]


def _tar_bytes(build: Callable[[tarfile.TarFile], None], compression: str = "gz") -> bytes:
    buffer = io.BytesIO()
    mode = f"w:{compression}" if compression else "w"
    with tarfile.open(fileobj=buffer, mode=mode) as archive:
        build(archive)
    return buffer.getvalue()


def _add_file(archive: tarfile.TarFile, name: str, data: bytes, mode: int = 0o644) -> None:
    info = tarfile.TarInfo(name)
    info.size = len(data)
    info.mode = mode
    archive.addfile(info, io.BytesIO(data))


@pytest.fixture
def make_tarball() -> Callable[..., bytes]:
    """Build a provider-style archive: every file under one wrapper directory.

    Files map a relative path to content, or to ``(content, mode)``.
    """

    def _make(
        files: dict[str, FileContent],
        wrapper: Optional[str] = "plugin-main",
        compression: str = "gz",
    ) -> bytes:
        def build(archive: tarfile.TarFile) -> None:
            if wrapper:
                info = tarfile.TarInfo(wrapper)
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                archive.addfile(info)
            for path, content in files.items():
                mode = 0o644
                if isinstance(content, tuple):
                    content, mode = content
                data = content.encode() if isinstance(content, str) else content
                name = f"{wrapper}/{path}" if wrapper else path
                _add_file(archive, name, data, mode)

        return _tar_bytes(build, compression)

    return _make


@pytest.fixture
def make_raw_tarball() -> Callable[..., bytes]:
    """Build an archive from explicit TarInfo entries (for hostile archives)."""

    def _make(entries: list[tuple[tarfile.TarInfo, bytes]], compression: str = "gz") -> bytes:
        def build(archive: tarfile.TarFile) -> None:
            for info, data in entries:
                if info.isfile():
                    info.size = len(data)
                    archive.addfile(info, io.BytesIO(data))
                else:
                    archive.addfile(info)

        return _tar_bytes(build, compression)

    return _make


@pytest.fixture
def plugin_dir(tmp_path: Path) -> Path:
    """Plugin directory inside a scratch root, not yet created."""
    return tmp_path / "pack" / "strand" / "start"


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch) -> Path:
    """Point STRAND_CONFIG at a per-test config file (not yet written)."""
    path = tmp_path / "config" / "config.yaml"
    monkeypatch.setenv("STRAND_CONFIG", str(path))
    return path


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """setup_logging() replaces root handlers; put them back after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
