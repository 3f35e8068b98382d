"""Dockerfile macro expansion.

A Dockerfile may embed markers of the form ``#++ family:selector ++#``. Each
marker names a fragment file below the provisioning tree::

    #++ apache:alpine-3 ++#  ->  <provisioning>/apache/Dockerfile/Dockerfile.alpine-3

Expansion replaces the marker token with the fragment content in a single
pass. Fragment content is inserted verbatim and never scanned for further
markers.
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Iterator, List, Pattern, Union

import structlog

from .filters import list_families, list_variants
from .models import DOCKERFILE_NAME, MacroMarker
from .utils import ProvisionError, atomic_write_text, read_text

logger = structlog.get_logger(__name__)

MARKER_OPEN = "#++"
MARKER_CLOSE = "++#"

_NAME = r"[A-Za-z0-9.-]+"
MARKER_PATTERN = re.compile(
    re.escape(MARKER_OPEN)
    + rf"[ \t]*(?P<family>{_NAME}):(?P<selector>{_NAME})[ \t]*"
    + re.escape(MARKER_CLOSE)
)

MarkerLike = Union[MacroMarker, str]


class UnresolvedMacroError(ProvisionError):
    """Raised when a marker has no fragment file in the provisioning tree."""

    def __init__(self, marker: MarkerLike, expected_path: str | Path) -> None:
        self.marker = str(marker)
        self.expected_path = Path(expected_path)
        super().__init__(
            f"Macro found: {self.marker}; missing content file: {self.expected_path}"
        )


def _as_marker(marker: MarkerLike) -> MacroMarker:
    if isinstance(marker, MacroMarker):
        return marker
    return MacroMarker.parse(marker)


@lru_cache(maxsize=256)
def _token_pattern(marker: MacroMarker) -> Pattern[str]:
    return re.compile(
        re.escape(MARKER_OPEN)
        + r"[ \t]*"
        + re.escape(marker.family)
        + ":"
        + re.escape(marker.selector)
        + r"[ \t]*"
        + re.escape(MARKER_CLOSE)
    )


def scan_markers(path: str | Path) -> Iterator[MacroMarker]:
    """Yield the distinct markers of ``path`` in first-occurrence order."""

    content = read_text(path)
    seen = set()
    for match in MARKER_PATTERN.finditer(content):
        marker = MacroMarker(match.group("family"), match.group("selector"))
        if marker in seen:
            continue
        seen.add(marker)
        yield marker


def fragment_path(marker: MarkerLike, provisioning_root: str | Path) -> Path:
    marker = _as_marker(marker)
    return Path(provisioning_root) / marker.family / DOCKERFILE_NAME / f"{DOCKERFILE_NAME}.{marker.selector}"


def resolve(marker: MarkerLike, provisioning_root: str | Path) -> Path:
    """Map ``marker`` to its fragment file, which must exist."""

    path = fragment_path(marker, provisioning_root)
    if not path.is_file():
        raise UnresolvedMacroError(marker, path)
    return path


def expand(target: str | Path, marker: MarkerLike, fragment: str | Path) -> int:
    """Replace every token of ``marker`` in ``target`` with the fragment content.

    Returns the number of replaced tokens. The target is only rewritten when
    at least one token was found.
    """

    marker = _as_marker(marker)
    replacement = read_text(fragment)
    original = read_text(target)

    # A callable keeps backslashes in the fragment from being read as group references.
    expanded, count = _token_pattern(marker).subn(lambda _match: replacement, original)
    if count:
        atomic_write_text(target, expanded)
    return count


def expand_file(dockerfile: str | Path, provisioning_root: str | Path) -> List[MacroMarker]:
    """Resolve and expand every marker of one Dockerfile.

    All markers are resolved before the file is touched, so an unresolved
    marker leaves the Dockerfile unchanged. Every token is replaced in one
    substitution over the original text and written back once; marker tokens
    inside inserted fragments stay as they are.
    """

    markers = list(scan_markers(dockerfile))
    if not markers:
        return []

    paths = [resolve(marker, provisioning_root) for marker in markers]
    contents = {marker: read_text(path) for marker, path in zip(markers, paths)}
    original = read_text(dockerfile)

    def _replace(match: "re.Match[str]") -> str:
        return contents[MacroMarker(match.group("family"), match.group("selector"))]

    atomic_write_text(dockerfile, MARKER_PATTERN.sub(_replace, original))
    return markers


def deploy_macros(docker_root: str | Path, provisioning_root: str | Path) -> List[Path]:
    """Expand the markers of every variant Dockerfile below ``docker_root``.

    Returns the Dockerfiles that contained at least one marker.
    """

    expanded: List[Path] = []
    for family_dir in list_families(docker_root):
        for variant in list_variants(family_dir):
            if not variant.has_definition:
                continue
            try:
                markers = expand_file(variant.dockerfile, provisioning_root)
            except ProvisionError as exc:
                exc.add_context(family=variant.family, variant=variant.name)
                raise
            if markers:
                logger.info(
                    "macros expanded",
                    family=variant.family,
                    variant=variant.name,
                    markers=[marker.name for marker in markers],
                )
                expanded.append(variant.dockerfile)
    return expanded
