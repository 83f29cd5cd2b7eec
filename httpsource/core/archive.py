"""Tarball helpers: safe extraction of fetched payloads, deterministic packing.

Extraction refuses absolute paths, ``..`` traversal, links, and special
files.  Packing produces byte-identical output for identical directory
contents (sorted entries, zeroed timestamps and ownership, gzip header
without name or mtime), so re-archiving an unchanged revision never changes
the served bytes.
"""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import tarfile
import tempfile
from collections.abc import Callable
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIXES: tuple[str, ...] = (".tar", ".tar.gz", ".tgz", ".tar.bz2", ".tar.xz")


class ArchiveError(ValueError):
    """Raised when an archive cannot be read or contains unsafe members."""


def looks_like_archive(path: Path) -> bool:
    """Whether *path*'s filename claims to be a tar archive."""
    return path.name.lower().endswith(ARCHIVE_SUFFIXES)


def _validate_member_path(member_name: str) -> Path | None:
    """Return the safe relative path of a member, or ``None`` for the archive root."""
    normalized = member_name.replace("\\", "/")
    relative = PurePosixPath(normalized)
    if relative.is_absolute():
        raise ArchiveError(f"Unsafe absolute path detected in archive: {member_name}")
    if not relative.parts:
        return None
    if any(part in {"", ".", ".."} for part in relative.parts):
        raise ArchiveError(f"Unsafe path detected in archive: {member_name}")
    return Path(*relative.parts)


def extract_tarball(tar_path: Path, destination: Path) -> list[Path]:
    """Safely extract a tar archive (any compression) into *destination*.

    Returns the list of extracted regular files.
    """
    destination.mkdir(parents=True, exist_ok=True)
    extracted: list[Path] = []
    try:
        with tarfile.open(tar_path, mode="r:*") as archive:
            members: list[tuple[tarfile.TarInfo, Path]] = []
            for member in archive.getmembers():
                member_path = _validate_member_path(member.name)
                if member_path is None:
                    if member.isdir():
                        continue
                    raise ArchiveError(f"Empty path detected in archive: {member.name}")
                if member.islnk() or member.issym():
                    raise ArchiveError(f"Unsafe link detected in archive: {member.name}")
                if not (member.isdir() or member.isfile()):
                    raise ArchiveError(
                        f"Unsupported tar member type encountered: {member.name}"
                    )
                members.append((member, member_path))

            for member, member_path in members:
                target_path = destination / member_path
                if member.isdir():
                    target_path.mkdir(parents=True, exist_ok=True)
                    continue
                target_path.parent.mkdir(parents=True, exist_ok=True)
                source = archive.extractfile(member)
                if source is None:
                    raise ArchiveError(f"Failed to extract member: {member.name}")
                with source, target_path.open("wb") as target:
                    shutil.copyfileobj(source, target)
                extracted.append(target_path)
    except tarfile.TarError as exc:
        raise ArchiveError(f"Failed to extract tar archive {tar_path}: {exc}") from exc
    except OSError as exc:
        raise ArchiveError(f"Failed to write extracted files to {destination}: {exc}") from exc

    logger.debug("Extracted %d files from %s", len(extracted), tar_path)
    return extracted


def _normalized_info(info: tarfile.TarInfo) -> tarfile.TarInfo:
    info.mtime = 0
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    info.mode = 0o755 if info.isdir() else 0o644
    return info


def build_tarball(
    source_dir: Path,
    destination: Path,
    *,
    exclude: Callable[[Path], bool] | None = None,
) -> int:
    """Pack *source_dir* into a deterministic ``.tar.gz`` at *destination*.

    ``exclude`` receives each path relative to *source_dir* and returns
    ``True`` to exclude it.  Symlinks and special files are skipped.  The
    archive is written to a temporary file next to *destination* and moved
    into place with ``os.replace``, so readers never observe a partial file.
    Returns the size of the archive in bytes.
    """
    entries = sorted(
        p for p in source_dir.rglob("*")
        if not p.is_symlink() and (p.is_dir() or p.is_file())
    )
    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=destination.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as raw:
            with gzip.GzipFile(filename="", mode="wb", fileobj=raw, mtime=0) as gz:
                with tarfile.open(fileobj=gz, mode="w", format=tarfile.GNU_FORMAT) as tar:
                    for path in entries:
                        relative = path.relative_to(source_dir)
                        if exclude is not None and exclude(relative):
                            continue
                        info = _normalized_info(
                            tar.gettarinfo(str(path), arcname=relative.as_posix())
                        )
                        if info.isfile():
                            with path.open("rb") as fh:
                                tar.addfile(info, fh)
                        else:
                            tar.addfile(info)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, destination)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return destination.stat().st_size
