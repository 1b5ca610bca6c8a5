"""
Type names usable in the ``experiment`` section of a config file.

Stages, analyses and converters register their constructor under the name
a config refers to them by. ``build_experiment`` is the only reader; the
engine works on the constructed objects.

Example:
    >>> @PROCESSES.register()
    ... class MaxScaling(UniquePassProcess):
    ...     ...
    >>> PROCESSES.create("MaxScaling")
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional


class Registry:
    """
    Config type name -> constructor.

    Args:
        kind: What the registry holds ("process", "analysis", ...), used in
            error messages.
    """

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._factories: Dict[str, Callable[..., Any]] = {}

    def register(self, name: Optional[str] = None) -> Callable:
        """Class decorator. ``name`` defaults to the class name."""
        def decorator(factory):
            self.add(name or factory.__name__, factory)
            return factory
        return decorator

    def add(self, name: str, factory: Callable[..., Any]) -> None:
        if name in self._factories:
            raise ValueError(f"{self.kind} {name!r} is registered twice")
        if not callable(factory):
            raise TypeError(f"{self.kind} {name!r} must be callable")
        self._factories[name] = factory

    def get(self, name: str) -> Callable[..., Any]:
        """
        Raises:
            KeyError: Unknown name. The message lists the known ones.
        """
        if name not in self._factories:
            raise KeyError(
                f"Unknown {self.kind} {name!r}. available={', '.join(self.names()) or '(none)'}"
            )
        return self._factories[name]

    def create(self, name: str, **params: Any) -> Any:
        """Construct ``name`` with the ``params`` mapping of its config entry."""
        return self.get(name)(**params)

    def names(self) -> List[str]:
        return sorted(self._factories)

    def __contains__(self, name: str) -> bool:
        return name in self._factories

    def __len__(self) -> int:
        return len(self._factories)

    def __repr__(self) -> str:
        return f"<Registry {self.kind} {self.names()}>"


PROCESSES = Registry("process")
ANALYSES = Registry("analysis")
CONVERTERS = Registry("converter")


__all__ = [
    "Registry",
    "PROCESSES",
    "ANALYSES",
    "CONVERTERS",
]
