# netlab_dispatch/core/registry.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional, Tuple

from .errors import InputError


AlgorithmKind = Literal["statistic", "layout", "community"]
Scope = Literal["node", "graph"]


def normalize_key(name: str) -> str:
    """'Ego_Density' and 'ego density' both resolve to 'ego-density'."""
    return str(name).strip().lower().replace("_", "-").replace(" ", "-")


def _compact(name: str) -> str:
    return normalize_key(name).replace("-", "")


@dataclass
class AlgorithmSpec:
    """
    Static description of a registered compute function.

    The metadata (label, description, complexity, applicability, requires)
    is the stable enumeration contract used by UIs for discovery; module and
    function_name are what a worker needs to locate the callable.
    """

    key: str
    label: str
    kind: str
    func: Optional[Callable[..., Any]]

    scope: Optional[Scope] = None
    description: str = ""
    complexity: str = ""
    applicability: str = "Any undirected graph"
    requires: List[str] = field(default_factory=list)
    default_options: Dict[str, Any] = field(default_factory=dict)

    module: str = ""
    function_name: str = ""

    def __post_init__(self) -> None:
        if self.func is not None:
            self.module = self.module or self.func.__module__
            self.function_name = self.function_name or self.func.__name__

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.key,
            "name": self.label,
            "kind": self.kind,
            "scope": self.scope,
            "description": self.description,
            "complexity": self.complexity,
            "applicability": self.applicability,
            "requires": list(self.requires),
            "default_options": dict(self.default_options),
            "module": self.module,
            "function_name": self.function_name,
        }


class AlgorithmRegistry:
    def __init__(self) -> None:
        self._specs: Dict[str, AlgorithmSpec] = {}
        self._by_target: Dict[Tuple[str, str], AlgorithmSpec] = {}

    # ---------------- Registration ----------------

    def register(self, spec: AlgorithmSpec) -> None:
        key = normalize_key(spec.key)
        if key in self._specs:
            raise ValueError(f"Duplicate algorithm key: {key}")
        spec.key = key
        self._specs[key] = spec
        self._by_target[(spec.module, spec.function_name)] = spec

    def decorator(self, **kwargs: Any) -> Callable:
        def wrapper(func: Callable) -> Callable:
            if "key" not in kwargs or "label" not in kwargs or "kind" not in kwargs:
                raise ValueError(
                    "Algorithm registration requires key, label, kind."
                )
            self.register(AlgorithmSpec(func=func, **kwargs))
            return func
        return wrapper

    # ---------------- Accessors -------------------

    def get(self, name: str) -> AlgorithmSpec:
        """Look up by key, tolerating case, underscores and missing hyphens."""
        key = normalize_key(name)
        if key in self._specs:
            return self._specs[key]
        compact = _compact(name)
        for spec in self._specs.values():
            if _compact(spec.key) == compact:
                return spec
        raise InputError(
            f"Unknown algorithm '{name}'. Available: {', '.join(self._specs)}"
        )

    def find(self, module: str, function_name: str) -> Optional[AlgorithmSpec]:
        return self._by_target.get((module, function_name))

    def list(
        self,
        kind: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> List[AlgorithmSpec]:
        return [
            s for s in self._specs.values()
            if (kind is None or s.kind == kind)
            and (scope is None or s.scope == scope)
        ]

    def describe(self, kind: Optional[str] = None) -> List[Dict[str, Any]]:
        return [s.as_dict() for s in self.list(kind)]

    def unmet_requirements(self, name: str, available: Iterable[str]) -> List[str]:
        have = {normalize_key(a) for a in available}
        return [r for r in self.get(name).requires if normalize_key(r) not in have]

    def clear(self) -> None:
        self._specs.clear()
        self._by_target.clear()

    def __len__(self) -> int:
        return len(self._specs)

    def __contains__(self, name: str) -> bool:
        try:
            self.get(name)
        except InputError:
            return False
        return True


GLOBAL_ALGORITHM_REGISTRY = AlgorithmRegistry()
