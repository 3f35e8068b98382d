"""Provisioning of multi-variant container image build contexts."""

from .catalog import TargetCatalog
from .config import ProvisionSettings
from .dispatcher import Dispatcher
from .filters import matches
from .macros import UnresolvedMacroError, expand, resolve, scan_markers
from .overlay import overlay

__all__ = [
    "Dispatcher",
    "ProvisionSettings",
    "TargetCatalog",
    "UnresolvedMacroError",
    "expand",
    "matches",
    "overlay",
    "resolve",
    "scan_markers",
]
