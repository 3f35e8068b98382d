from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import List, Pattern

from .models import Variant
from .utils import ReadError

MATCH_ALL = "*"


@lru_cache(maxsize=128)
def _compile_filter(pattern: str) -> Pattern[str]:
    # Only "*" is special; every other character, "?" and "[" included, is literal.
    parts = (re.escape(chunk) for chunk in pattern.split("*"))
    return re.compile("[^/]*".join(parts))


def matches(variant_name: str, pattern: str) -> bool:
    """Return True when ``variant_name`` matches the glob ``pattern``.

    Matching is case-sensitive and anchored to the whole name.
    """

    if pattern == MATCH_ALL:
        return True
    return _compile_filter(pattern).fullmatch(variant_name) is not None


def _subdirectories(path: Path) -> List[Path]:
    try:
        return sorted(entry for entry in path.iterdir() if entry.is_dir())
    except OSError as exc:
        raise ReadError(path, str(exc)) from exc


def list_families(docker_root: str | Path) -> List[Path]:
    """Return every image family directory below ``docker_root``."""

    return _subdirectories(Path(docker_root))


def list_variants(family_dir: str | Path, pattern: str = MATCH_ALL) -> List[Variant]:
    """Return the variants of ``family_dir`` whose names match ``pattern``.

    A missing family directory yields no variants.
    """

    family_dir = Path(family_dir)
    if not family_dir.is_dir():
        return []
    return [
        Variant.from_path(path)
        for path in _subdirectories(family_dir)
        if matches(path.name, pattern)
    ]
