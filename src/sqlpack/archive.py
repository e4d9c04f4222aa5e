"""Pack and unpack export trees.

Archives are written as tar.gz with entries relative to the export
directory.  Unpacking accepts ``.tar.gz``, ``.tgz``, ``.tar`` and ``.zip``.
"""

import tarfile
import zipfile
from pathlib import Path

from sqlpack.errors import ArchiveNotFoundError, UnsupportedArchiveError

TAR_SUFFIXES = (".tar.gz", ".tgz", ".tar")
ZIP_SUFFIXES = (".zip",)


def archive_kind(path: Path) -> str:
    """Return ``"tar"`` or ``"zip"`` from the file name.

    Raises:
        UnsupportedArchiveError: For any other extension.
    """
    name = path.name.lower()
    if name.endswith(TAR_SUFFIXES):
        return "tar"
    if name.endswith(ZIP_SUFFIXES):
        return "zip"
    raise UnsupportedArchiveError(
        f"Unsupported archive format: {path.name}. Expected .tar.gz or .zip"
    )


def pack_archive(source_dir: Path, archive_path: Path) -> Path:
    """Bundle the contents of ``source_dir`` into a tar.gz.

    Returns:
        ``archive_path``.
    """
    archive_path.parent.mkdir(parents=True, exist_ok=True)
    children = sorted(source_dir.iterdir())
    target = archive_path.resolve()
    with tarfile.open(archive_path, "w:gz") as tar:
        for child in children:
            if child.resolve() == target:
                continue
            tar.add(child, arcname=child.name)
    return archive_path


def unpack_archive(archive_path: Path, destination: Path) -> Path:
    """Extract ``archive_path`` into ``destination`` (created if needed).

    Raises:
        ArchiveNotFoundError: If the archive does not exist.
        UnsupportedArchiveError: If the format is unknown or the file is
            not a readable archive.
    """
    if not archive_path.is_file():
        raise ArchiveNotFoundError(f"Archive file not found: {archive_path}")

    kind = archive_kind(archive_path)
    destination.mkdir(parents=True, exist_ok=True)

    try:
        if kind == "tar":
            with tarfile.open(archive_path, "r:*") as tar:
                tar.extractall(destination, filter="data")
        else:
            with zipfile.ZipFile(archive_path) as zf:
                zf.extractall(destination)
    except (tarfile.TarError, zipfile.BadZipFile, EOFError) as e:
        raise UnsupportedArchiveError(f"Cannot read archive {archive_path}: {e}") from e

    return destination


def human_size(num_bytes: int) -> str:
    """Format a byte count like ``du -h`` (``1.5M``)."""
    size = float(num_bytes)
    for unit in ("B", "K", "M", "G"):
        if size < 1024:
            return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}T"
