"""Target dispatcher.

Each build target is a :class:`~provisioner.models.TargetSpec` from the
target catalog. The dispatcher runs the operations of a target in a fixed
order: baselayout deployment, Dockerfile macro expansion, clearing of
``conf/`` directories and finally the configuration overlay steps.
"""

from __future__ import annotations

from typing import List, Optional

import structlog

from .baselayout import baselayout_archive, deploy_baselayout
from .catalog import TargetCatalog
from .config import ProvisionSettings
from .filters import MATCH_ALL, list_variants
from .macros import deploy_macros
from .models import DeploymentStep, TargetSpec, Variant
from .overlay import OverlayFailure, clear_configuration, overlay
from .utils import ProvisionError, relative_dir

logger = structlog.get_logger(__name__)

ALL_TARGETS = "all"


class UnknownTargetError(ProvisionError):
    """Raised when the requested target is not in the catalog."""

    def __init__(self, target: str, known: List[str]) -> None:
        self.target = target
        self.known = known
        super().__init__(f"Unknown build target {target!r}; known targets: {', '.join(known)}")


class Dispatcher:
    """Run catalog targets against one image tree."""

    def __init__(
        self,
        settings: ProvisionSettings,
        catalog: Optional[TargetCatalog] = None,
        lenient: bool = False,
    ) -> None:
        self.settings = settings
        self.catalog = catalog or TargetCatalog.default()
        self.lenient = lenient
        self.failures: List[OverlayFailure] = []

    def run(self, requested_target: str = ALL_TARGETS) -> List[str]:
        """Run every target selected by ``requested_target`` and return their names."""

        if requested_target != ALL_TARGETS and requested_target not in self.catalog:
            raise UnknownTargetError(requested_target, self.catalog.names())

        executed: List[str] = []
        for spec in self.catalog.iter_targets():
            if self.run_target(spec.name, requested_target):
                executed.append(spec.name)
        return executed

    def run_target(self, target_name: str, requested_target: str = ALL_TARGETS) -> bool:
        """Run ``target_name`` if ``requested_target`` selects it.

        Returns False without touching the tree when the target is not selected.
        """

        if requested_target not in (ALL_TARGETS, target_name):
            return False

        spec = self.catalog.get(target_name)
        log = logger.bind(target=spec.name)
        try:
            self._execute(spec, log)
        except ProvisionError as exc:
            exc.add_context(target=spec.name)
            raise
        return True

    def _execute(self, spec: TargetSpec, log: structlog.stdlib.BoundLogger) -> None:
        if spec.header:
            log.info(f"Building configuration for {self.settings.image_namespace}/{spec.header}")

        if spec.baselayout:
            log.info("deploying baselayout")
            with baselayout_archive(self.settings.baselayout_dir) as archive:
                for step in spec.baselayout:
                    variants = self._variants(step.family, step.filter)
                    self._report(log, variants)
                    deploy_baselayout(archive, variants)

        if spec.macros:
            log.info("deploying Dockerfile macros")
            for dockerfile in deploy_macros(self.settings.docker_dir, self.settings.provisioning_dir):
                log.info("expanded", path=relative_dir(dockerfile.parent, self.settings.base_dir))

        if spec.clear:
            log.info("clearing configuration", family=spec.clear)
            variants = self._variants(spec.clear, MATCH_ALL)
            self._report(log, variants)
            clear_configuration(variants)

        for step in spec.steps:
            self._deploy(step, log)

    def _deploy(self, step: DeploymentStep, log: structlog.stdlib.BoundLogger) -> None:
        if step.filter == MATCH_ALL:
            log.info("deploying configuration", bundle=step.bundle, family=step.family)
        else:
            log.info(
                "deploying configuration with filter",
                bundle=step.bundle,
                family=step.family,
                filter=step.filter,
            )
        variants = self._variants(step.family, step.filter)
        self._report(log, variants)
        failures = overlay(
            self.settings.provisioning_dir / step.bundle,
            variants,
            clear_first=False,
            lenient=self.lenient,
        )
        self.failures.extend(failures)

    def _variants(self, family: str, pattern: str) -> List[Variant]:
        family_dir = self.settings.docker_dir / family
        if not family_dir.is_dir():
            logger.warning("image family not found", family=family, path=str(family_dir))
            return []
        return list_variants(family_dir, pattern)

    def _report(self, log: structlog.stdlib.BoundLogger, variants: List[Variant]) -> None:
        for variant in variants:
            if variant.has_definition:
                log.info(
                    "variant",
                    family=variant.family,
                    variant=variant.name,
                    path=relative_dir(variant.path, self.settings.base_dir),
                )
