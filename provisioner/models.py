from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

DOCKERFILE_NAME = "Dockerfile"
CONF_DIR_NAME = "conf"

_IDENTIFIER = re.compile(r"^[A-Za-z0-9.-]+$")


@dataclass(frozen=True)
class Variant:
    """One build context (an OS/tag combination) inside an image family."""

    name: str
    family_path: Path
    has_definition: bool

    @classmethod
    def from_path(cls, path: str | Path) -> "Variant":
        path = Path(path)
        return cls(
            name=path.name,
            family_path=path.parent,
            has_definition=(path / DOCKERFILE_NAME).is_file(),
        )

    @property
    def family(self) -> str:
        return self.family_path.name

    @property
    def path(self) -> Path:
        return self.family_path / self.name

    @property
    def dockerfile(self) -> Path:
        return self.path / DOCKERFILE_NAME

    @property
    def conf_dir(self) -> Path:
        return self.path / CONF_DIR_NAME


@dataclass(frozen=True)
class MacroMarker:
    """A ``family:selector`` reference to a Dockerfile fragment."""

    family: str
    selector: str

    @property
    def name(self) -> str:
        return f"{self.family}:{self.selector}"

    @classmethod
    def parse(cls, value: str) -> "MacroMarker":
        family, sep, selector = value.partition(":")
        if not sep or not _IDENTIFIER.match(family) or not _IDENTIFIER.match(selector):
            raise ValueError(f"Invalid macro marker: {value!r}")
        return cls(family=family, selector=selector)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class DeploymentStep:
    """Copy configuration bundle ``bundle`` into ``family`` variants matching ``filter``."""

    bundle: str
    family: str
    filter: str = "*"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeploymentStep":
        return cls(
            bundle=data["bundle"],
            family=data["family"],
            filter=str(data.get("filter", "*")),
        )


@dataclass(frozen=True)
class BaselayoutStep:
    """Drop the baselayout archive into ``family`` variants matching ``filter``."""

    family: str
    filter: str = "*"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BaselayoutStep":
        return cls(family=data["family"], filter=str(data.get("filter", "*")))


@dataclass
class TargetSpec:
    """A named build target and the ordered operations it runs."""

    name: str
    header: Optional[str] = None
    clear: Optional[str] = None
    baselayout: List[BaselayoutStep] = field(default_factory=list)
    macros: bool = False
    steps: List[DeploymentStep] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TargetSpec":
        return cls(
            name=data["name"],
            header=data.get("header"),
            clear=data.get("clear"),
            baselayout=[BaselayoutStep.from_dict(entry) for entry in data.get("baselayout", [])],
            macros=bool(data.get("macros", False)),
            steps=[DeploymentStep.from_dict(entry) for entry in data.get("steps", [])],
        )
