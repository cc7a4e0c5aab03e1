"""Name-keyed class registry shared by model adapters and data modules."""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

T = TypeVar("T")


class RegistryError(ValueError):
    """Raised when a registry operation fails."""


def _normalize_name(name: str) -> str:
    normalized = name.strip()
    if not normalized:
        raise RegistryError("Registry name must be non-empty.")
    return normalized


class Registry:
    """Maps a short name (as used in config files) to an implementation class."""

    def __init__(self, kind: str) -> None:
        self._kind = kind
        self._entries: dict[str, type[object]] = {}

    def register(self, name: str) -> Callable[[type[T]], type[T]]:
        """Class decorator registering the decorated class under *name*."""
        normalized = _normalize_name(name)

        def decorator(cls: type[T]) -> type[T]:
            if normalized in self._entries:
                raise RegistryError(
                    f"{self._kind.capitalize()} '{normalized}' is already registered. "
                    f"Available: {self._available_text()}."
                )
            self._entries[normalized] = cls
            return cls

        return decorator

    def get(self, name: str) -> type[object]:
        """Return the class registered under *name*."""
        normalized = _normalize_name(name)
        if normalized not in self._entries:
            raise RegistryError(
                f"Unknown {self._kind} '{normalized}'. Available: {self._available_text()}."
            )
        return self._entries[normalized]

    def available(self) -> list[str]:
        """Return sorted registered names."""
        return sorted(self._entries)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip() in self._entries

    def _available_text(self) -> str:
        return ", ".join(sorted(self._entries)) or "none"
