"""Cargo and registry collaborators."""

from crate_release.cargo.index import CratesIndex, wait_for_publish
from crate_release.cargo.metadata import CargoPackage, Workspace, load_workspace, topo_sort

__all__ = [
    "CratesIndex",
    "wait_for_publish",
    "CargoPackage",
    "Workspace",
    "load_workspace",
    "topo_sort",
]
