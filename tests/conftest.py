from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Optional

import pytest

from provisioner.config import ProvisionSettings


def write_tree(root: Path, files: Dict[str, str]) -> Path:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


@pytest.fixture
def tree_writer() -> Callable[[Path, Dict[str, str]], Path]:
    return write_tree


@pytest.fixture
def settings(tmp_path: Path) -> ProvisionSettings:
    for name in ("docker", "provisioning", "baselayout"):
        (tmp_path / name).mkdir()
    return ProvisionSettings(base_dir=tmp_path)


@pytest.fixture
def make_variant(settings: ProvisionSettings) -> Callable[..., Path]:
    def _make(family: str, name: str, dockerfile: Optional[str] = "FROM scratch\n") -> Path:
        path = settings.docker_dir / family / name
        path.mkdir(parents=True, exist_ok=True)
        if dockerfile is not None:
            (path / "Dockerfile").write_text(dockerfile)
        return path

    return _make
