"""Execution specifications: approved test contracts and their YAML format."""

from .codec import (
    SPEC_SCHEMA_VERSION,
    SpecificationFormatError,
    SpecificationIntegrityError,
    content_fingerprint,
    dumps_specification,
    loads_specification,
    specification_from_dict,
    specification_to_dict,
)
from .models import (
    CostEnvelope,
    ExecutionSpecification,
    FactorSourceMetadata,
    SpecificationValidationError,
    TestIntent,
    ThresholdOrigin,
)

__all__ = [
    "SPEC_SCHEMA_VERSION",
    "CostEnvelope",
    "ExecutionSpecification",
    "FactorSourceMetadata",
    "SpecificationFormatError",
    "SpecificationIntegrityError",
    "SpecificationValidationError",
    "TestIntent",
    "ThresholdOrigin",
    "content_fingerprint",
    "dumps_specification",
    "loads_specification",
    "specification_from_dict",
    "specification_to_dict",
]
