"""Model adapter and data module registries for trainrunner."""

from __future__ import annotations

from importlib import import_module

from trainrunner.registry.base import Registry, RegistryError

MODEL_REGISTRY_MODULES: tuple[str, ...] = ("trainrunner.models.mlp",)
DATA_REGISTRY_MODULES: tuple[str, ...] = (
    "trainrunner.data.bitwise",
    "trainrunner.data.tabular_csv",
)

MODELS: Registry = Registry("model adapter")
DATA_MODULES: Registry = Registry("data module")

__all__ = [
    "DATA_MODULES",
    "MODELS",
    "Registry",
    "RegistryError",
    "initialize_registries",
]


def initialize_registries() -> None:
    """Import known plugin modules to populate registries deterministically."""
    for module_name in MODEL_REGISTRY_MODULES + DATA_REGISTRY_MODULES:
        import_module(module_name)
