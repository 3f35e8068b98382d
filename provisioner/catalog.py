from __future__ import annotations

import json
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import yaml

from .models import TargetSpec

DEFAULT_TARGETS = "targets.yaml"


class CatalogError(RuntimeError):
    """Raised when the target catalog cannot be parsed."""


def _parse(raw_text: str, source: str) -> Dict[str, TargetSpec]:
    try:
        raw_data = json.loads(raw_text)
    except json.JSONDecodeError:
        try:
            raw_data = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            raise CatalogError(f"Cannot parse target catalog {source}: {exc}") from exc

    if not isinstance(raw_data, dict) or not isinstance(raw_data.get("targets"), list):
        raise CatalogError(f"Catalog {source} must contain a top-level 'targets' list")

    targets: Dict[str, TargetSpec] = {}
    for entry in raw_data["targets"]:
        try:
            spec = TargetSpec.from_dict(entry)
        except (KeyError, TypeError, AttributeError) as exc:
            raise CatalogError(f"Invalid target entry in {source}: {entry!r}") from exc
        if spec.name in targets:
            raise CatalogError(f"Duplicate target {spec.name!r} in {source}")
        if spec.name == "all":
            raise CatalogError(f"Target name 'all' is reserved ({source})")
        targets[spec.name] = spec
    return targets


@dataclass
class TargetCatalog:
    """Ordered table of build targets, loaded from JSON or YAML."""

    path: Optional[Path] = None
    _cache: Optional[Dict[str, TargetSpec]] = None

    @classmethod
    def from_file(cls, path: str | Path) -> "TargetCatalog":
        return cls(path=Path(path))

    @classmethod
    def default(cls) -> "TargetCatalog":
        return cls(path=None)

    def _load(self) -> Dict[str, TargetSpec]:
        if self._cache is not None:
            return self._cache

        if self.path is None:
            source = DEFAULT_TARGETS
            raw_text = resources.files("provisioner").joinpath(DEFAULT_TARGETS).read_text(encoding="utf-8")
        else:
            source = str(self.path)
            try:
                raw_text = self.path.read_text(encoding="utf-8")
            except OSError as exc:
                raise CatalogError(f"Cannot read target catalog {source}: {exc}") from exc

        self._cache = _parse(raw_text, source)
        return self._cache

    def iter_targets(self) -> Iterable[TargetSpec]:
        return self._load().values()

    def names(self) -> List[str]:
        return list(self._load())

    def get(self, name: str) -> TargetSpec:
        try:
            return self._load()[name]
        except KeyError as exc:
            raise CatalogError(f"Unknown target: {name}") from exc

    def __len__(self) -> int:
        return len(self._load())

    def __contains__(self, name: str) -> bool:
        return name in self._load()
