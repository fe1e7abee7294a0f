"""Baseline footprints.

A footprint identifies the circumstances a baseline is comparable under:
the use case, its functional parameters (factors), and the set of declared
covariate keys. Covariate *values* are deliberately not part of it; they
are compared separately during selection.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from probity.covariates.declaration import CovariateDeclaration
from probity.covariates.values import sha256_hex

FOOTPRINT_LENGTH = 8


def _render(value: Any) -> str:
    if isinstance(value, Mapping):
        inner = ",".join(f"{k}:{_render(value[k])}" for k in sorted(value, key=str))
        return "{" + inner + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_render(v) for v in value) + "]"
    return str(value)


class Footprint(BaseModel):
    """Identity of a baseline's comparability class."""

    model_config = ConfigDict(frozen=True)

    use_case_id: str = Field(..., min_length=1)
    factors: tuple[tuple[str, str], ...] = ()
    covariate_keys: tuple[str, ...] = ()

    @classmethod
    def of(
        cls,
        use_case_id: str,
        factors: Mapping[str, Any] | None = None,
        covariate_keys: CovariateDeclaration | Iterable[str] = (),
    ) -> Footprint:
        """Build a footprint, normalizing factors to sorted rendered pairs."""
        if isinstance(covariate_keys, CovariateDeclaration):
            keys = covariate_keys.keys
        else:
            keys = tuple(covariate_keys)
        rendered = tuple(sorted((str(k), _render(v)) for k, v in (factors or {}).items()))
        return cls(use_case_id=use_case_id, factors=rendered, covariate_keys=keys)

    def canonical(self) -> str:
        lines = [f"useCase:{self.use_case_id}"]
        lines.extend(f"factor:{name}={value}" for name, value in self.factors)
        lines.extend(f"covariate:{key}" for key in self.covariate_keys)
        return "\n".join(lines) + "\n"

    @property
    def digest(self) -> str:
        """Truncated SHA-256 of the canonical rendering."""
        return sha256_hex(self.canonical())[:FOOTPRINT_LENGTH]

    def __str__(self) -> str:
        return self.digest
