"""Baseline identity, naming, records, selection and expiration."""

from .expiration import ExpirationEvaluator, ExpirationPolicy, ExpirationState, ExpirationStatus
from .footprint import Footprint
from .naming import BaselineFileNamer, BaselineFilenameError, ParsedFilename
from .records import (
    BASELINE_SCHEMA_VERSION,
    BaselineFormatError,
    BaselineIdentityError,
    BaselineRecord,
)
from .selection import (
    BaselineSelected,
    BaselineSelector,
    NoCompatibleBaseline,
    NoCompatibleBaselineError,
    SelectionResult,
)

__all__ = [
    "BASELINE_SCHEMA_VERSION",
    "BaselineFileNamer",
    "BaselineFilenameError",
    "BaselineFormatError",
    "BaselineIdentityError",
    "BaselineRecord",
    "BaselineSelected",
    "BaselineSelector",
    "ExpirationEvaluator",
    "ExpirationPolicy",
    "ExpirationState",
    "ExpirationStatus",
    "Footprint",
    "NoCompatibleBaseline",
    "NoCompatibleBaselineError",
    "ParsedFilename",
    "SelectionResult",
]
