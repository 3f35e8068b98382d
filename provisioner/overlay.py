"""Configuration overlay: copy provisioning bundles into variant ``conf/`` trees."""

from __future__ import annotations

import shutil
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List

import structlog

from .models import Variant
from .utils import CopyError, FileOperationError, WriteError

logger = structlog.get_logger(__name__)


@dataclass
class _ConfLock:
    lock: threading.RLock = field(default_factory=threading.RLock)
    holders: int = 0


_locks_guard = threading.Lock()
_conf_locks: Dict[Path, _ConfLock] = {}


@dataclass
class OverlayFailure:
    variant: Variant
    error: FileOperationError


@contextmanager
def conf_transaction(variant: Variant) -> Iterator[Path]:
    """Hold exclusive access to ``variant.conf_dir`` for the duration of the block.

    The lock entry is dropped once its last holder leaves.
    """

    conf_dir = variant.conf_dir
    key = conf_dir.resolve()
    with _locks_guard:
        entry = _conf_locks.setdefault(key, _ConfLock())
        entry.holders += 1
    try:
        with entry.lock:
            yield conf_dir
    finally:
        with _locks_guard:
            entry.holders -= 1
            if entry.holders == 0:
                del _conf_locks[key]


def _clear(conf_dir: Path) -> None:
    if not conf_dir.exists() and not conf_dir.is_symlink():
        return
    try:
        if conf_dir.is_dir() and not conf_dir.is_symlink():
            shutil.rmtree(conf_dir)
        else:
            conf_dir.unlink()
    except OSError as exc:
        raise WriteError(conf_dir, f"cannot remove previous configuration: {exc}") from exc


def clear_configuration(variants: Iterable[Variant]) -> List[Variant]:
    """Remove the ``conf/`` directory of every variant with a Dockerfile.

    A failure is always raised, carrying the family and variant, regardless
    of the lenient overlay mode.
    """

    cleared: List[Variant] = []
    for variant in variants:
        if not variant.has_definition:
            continue
        try:
            with conf_transaction(variant) as conf_dir:
                _clear(conf_dir)
        except WriteError as exc:
            exc.add_context(family=variant.family, variant=variant.name)
            raise
        cleared.append(variant)
    return cleared


def _copy_tree(source_dir: Path, conf_dir: Path) -> None:
    try:
        shutil.copytree(source_dir, conf_dir, dirs_exist_ok=True)
    except shutil.Error as exc:
        # shutil.Error carries a list of (src, dst, reason) tuples.
        reasons = "; ".join(str(entry[2]) for entry in exc.args[0]) if exc.args else str(exc)
        raise CopyError(source_dir, conf_dir, reasons) from exc
    except OSError as exc:
        raise CopyError(source_dir, conf_dir, str(exc)) from exc


def overlay(
    source_dir: str | Path,
    variants: Iterable[Variant],
    clear_first: bool = False,
    lenient: bool = False,
) -> List[OverlayFailure]:
    """Merge ``source_dir`` into the ``conf/`` directory of each variant.

    Files already present in ``conf/`` are overwritten when the bundle has the
    same path and kept otherwise, so bundles can be layered by calling this
    repeatedly with ``clear_first=False``. With ``clear_first`` the whole
    ``conf/`` tree is removed first.

    Variants without a Dockerfile are skipped. By default the first failure
    (a :class:`CopyError`, or a :class:`WriteError` from the clear step) is
    raised with the family and variant attached; with ``lenient`` it is
    logged, recorded in the returned failure list and the remaining variants
    are still processed.
    """

    source_dir = Path(source_dir)
    failures: List[OverlayFailure] = []

    for variant in variants:
        if not variant.has_definition:
            continue
        try:
            if not source_dir.is_dir():
                raise CopyError(source_dir, variant.conf_dir, "source bundle is not a directory")
            with conf_transaction(variant) as conf_dir:
                if clear_first:
                    _clear(conf_dir)
                _copy_tree(source_dir, conf_dir)
        except (CopyError, WriteError) as exc:
            exc.add_context(family=variant.family, variant=variant.name)
            if not lenient:
                raise
            logger.warning(
                "configuration overlay failed",
                family=variant.family,
                variant=variant.name,
                source=str(source_dir),
                error=str(exc),
            )
            failures.append(OverlayFailure(variant, exc))
    return failures
