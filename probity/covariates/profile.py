"""Covariate profiles.

A profile is the concrete set of covariate values observed in one context,
ordered as the declaration that produced it. Profiles are immutable.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from .values import StringValue, TimeWindowValue, sha256_hex, value_from_data, value_to_data

ProfileValue = StringValue | TimeWindowValue


class CovariateProfile(Mapping[str, ProfileValue]):
    """Immutable, ordered mapping from covariate key to value.

    Plain strings passed in are wrapped as ``StringValue``.

    Example:
        profile = CovariateProfile({"region": "EU", "day_of_week": "WEEKDAY"})
        profile["region"].canonical()  # "EU"

    """

    __slots__ = ("_entries",)

    def __init__(
        self,
        entries: Mapping[str, ProfileValue | str] | Iterable[tuple[str, ProfileValue | str]] = (),
    ) -> None:
        items = entries.items() if isinstance(entries, Mapping) else entries
        ordered: dict[str, ProfileValue] = {}
        for key, value in items:
            if key in ordered:
                raise ValueError(f"Duplicate covariate key: {key!r}")
            ordered[key] = StringValue(text=value) if isinstance(value, str) else value
        self._entries = ordered

    @classmethod
    def empty(cls) -> CovariateProfile:
        return cls()

    def __getitem__(self, key: str) -> ProfileValue:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CovariateProfile):
            return NotImplemented
        return list(self._entries.items()) == list(other._entries.items())

    def __hash__(self) -> int:
        return hash(tuple(self._entries.items()))

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v.canonical()!r}" for k, v in self._entries.items())
        return f"CovariateProfile({inner})"

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def ordered_keys(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def value_hashes(self) -> list[str]:
        """SHA-256 hex of ``key=canonical`` for each entry, in order."""
        return [sha256_hex(f"{key}={value.canonical()}") for key, value in self._entries.items()]

    def to_dict(self) -> dict[str, Any]:
        """Serialize for YAML, preserving order."""
        return {key: value_to_data(value) for key, value in self._entries.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> CovariateProfile:
        """Inverse of ``to_dict``.

        Raises:
            ValueError: If ``data`` is not a mapping, or a value is not a
                recognised covariate value form

        """
        if not data:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError(f"Covariates must be a mapping, got {type(data).__name__}")
        return cls((str(key), value_from_data(value)) for key, value in data.items())
