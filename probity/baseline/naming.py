"""Baseline file naming.

Filenames have the form::

    {SanitizedUseCaseName}-{footprint4}[-{valueHash4}]*.yaml

Each value hash is the first four characters of the covariate's value hash,
in declaration order. Parsing a generated name recovers the sanitized name,
the footprint prefix and the ordered value-hash prefixes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from probity.covariates.profile import CovariateProfile

HASH_LENGTH = 4
EXTENSION = ".yaml"
ACCEPTED_EXTENSIONS = (".yaml", ".yml")

# Hyphens are the field separator, so they are unsafe in the name too.
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_]")


class BaselineFilenameError(ValueError):
    """Raised when a filename does not follow the baseline naming scheme."""

    pass


@dataclass(frozen=True)
class ParsedFilename:
    """Components of a baseline filename."""

    use_case_name: str
    footprint_hash: str
    covariate_hashes: tuple[str, ...]

    @property
    def covariate_count(self) -> int:
        return len(self.covariate_hashes)

    @property
    def has_covariates(self) -> bool:
        return bool(self.covariate_hashes)


class BaselineFileNamer:
    """Generates and parses baseline filenames."""

    @staticmethod
    def sanitize(name: str) -> str:
        """Replace every character outside ``[A-Za-z0-9_]`` with ``_``."""
        return _UNSAFE_CHARS.sub("_", name)

    def generate_filename(
        self,
        use_case_name: str,
        footprint_hash: str,
        profile: CovariateProfile | None = None,
    ) -> str:
        """Build the filename for a baseline.

        Args:
            use_case_name: Use case identifier (sanitized here)
            footprint_hash: Footprint digest; only its first four chars are used
            profile: Covariate values, hashed in order

        Returns:
            Filename including the ``.yaml`` extension

        Raises:
            ValueError: If the use case name or footprint hash is blank

        """
        if not use_case_name or not use_case_name.strip():
            raise ValueError("Use case name cannot be blank")
        if not footprint_hash:
            raise ValueError("Footprint hash cannot be blank")

        parts = [self.sanitize(use_case_name), footprint_hash[:HASH_LENGTH]]
        if profile is not None:
            parts.extend(value_hash[:HASH_LENGTH] for value_hash in profile.value_hashes())
        return "-".join(parts) + EXTENSION

    def parse(self, filename: str) -> ParsedFilename:
        """Split a baseline filename into its components.

        Raises:
            BaselineFilenameError: If the name has fewer than two fields

        """
        stem = filename
        for extension in ACCEPTED_EXTENSIONS:
            if stem.endswith(extension):
                stem = stem[: -len(extension)]
                break

        parts = stem.split("-")
        if len(parts) < 2 or not parts[0] or not parts[1]:
            raise BaselineFilenameError(f"Invalid baseline filename format: {filename}")
        return ParsedFilename(
            use_case_name=parts[0],
            footprint_hash=parts[1],
            covariate_hashes=tuple(parts[2:]),
        )
