"""Provisioning settings with Pydantic."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProvisionSettings(BaseSettings):
    """Locations of the image tree and run options for one provisioning run."""

    model_config = SettingsConfigDict(
        env_prefix="PROVISION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    base_dir: Path = Field(default_factory=Path.cwd)

    # Shared with the image build scripts, hence no prefix.
    build_mode: str = Field(default="", validation_alias=AliasChoices("BUILD_MODE", "build_mode"))

    image_namespace: str = Field(
        default="webdevops",
        validation_alias=AliasChoices("PROVISION_NAMESPACE", "image_namespace"),
    )

    # Observability
    log_level: str = "INFO"
    log_format: str = "console"  # console or json

    @classmethod
    def from_env(cls, base_dir: Optional[Path | str] = None) -> "ProvisionSettings":
        """Read settings from the environment; an explicit ``base_dir`` wins."""
        if base_dir is None:
            return cls()
        return cls(base_dir=Path(base_dir))

    @property
    def docker_dir(self) -> Path:
        return self.base_dir / "docker"

    @property
    def provisioning_dir(self) -> Path:
        return self.base_dir / "provisioning"

    @property
    def baselayout_dir(self) -> Path:
        return self.base_dir / "baselayout"

    @property
    def skip_provisioning(self) -> bool:
        # Images are only pushed in push mode; the build contexts are already provisioned.
        return self.build_mode == "push"
