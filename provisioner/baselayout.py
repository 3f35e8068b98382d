from __future__ import annotations

import shutil
import tarfile
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List

from .models import Variant
from .utils import CopyError, ReadError, WriteError

ARCHIVE_NAME = "baselayout.tar"


def _as_root(info: tarfile.TarInfo) -> tarfile.TarInfo:
    info.uid = info.gid = 0
    info.uname = info.gname = "root"
    return info


def build_baselayout(source_dir: str | Path, archive_path: str | Path) -> Path:
    """Pack the contents of ``source_dir`` into a bzip2 tar owned by root.

    Top-level entries whose names start with ``.`` are left out, like a shell
    ``*`` glob would. Hidden files further down the tree are kept.
    """

    source_dir = Path(source_dir)
    archive_path = Path(archive_path)
    if not source_dir.is_dir():
        raise ReadError(source_dir, "baselayout directory does not exist")

    try:
        entries = sorted(entry for entry in source_dir.iterdir() if not entry.name.startswith("."))
    except OSError as exc:
        raise ReadError(source_dir, str(exc)) from exc

    archive_path.unlink(missing_ok=True)
    try:
        with tarfile.open(archive_path, "w:bz2") as archive:
            for entry in entries:
                if entry.resolve() == archive_path.resolve():
                    continue
                archive.add(entry, arcname=entry.name, filter=_as_root)
    except OSError as exc:
        raise WriteError(archive_path, str(exc)) from exc
    return archive_path


@contextmanager
def baselayout_archive(source_dir: str | Path) -> Iterator[Path]:
    """Build the baselayout archive in a scratch directory and remove it afterwards."""

    with tempfile.TemporaryDirectory(prefix="baselayout-") as scratch:
        yield build_baselayout(source_dir, Path(scratch) / ARCHIVE_NAME)


def deploy_baselayout(archive_path: str | Path, variants: Iterable[Variant]) -> List[Variant]:
    """Copy the archive into every variant that has a Dockerfile."""

    archive_path = Path(archive_path)
    deployed: List[Variant] = []
    for variant in variants:
        if not variant.has_definition:
            continue
        destination = variant.path / ARCHIVE_NAME
        try:
            shutil.copyfile(archive_path, destination)
        except OSError as exc:
            raise CopyError(archive_path, destination, str(exc)).add_context(
                family=variant.family, variant=variant.name
            ) from exc
        deployed.append(variant)
    return deployed
