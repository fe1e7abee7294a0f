"""YAML format for execution specifications.

Serialized specifications carry a ``contentFingerprint``: the SHA-256 of the
canonical YAML rendering of every other field. Loading verifies it, so a
hand-edited threshold is detected rather than silently trusted.
"""

from __future__ import annotations

import hashlib
import logging
import re
from datetime import datetime, timezone
from typing import Any

import yaml

from probity.config.models import ConfigurationError

from .models import (
    CostEnvelope,
    ExecutionSpecification,
    FactorSourceMetadata,
    TestIntent,
    ThresholdOrigin,
)

logger = logging.getLogger(__name__)

SPEC_SCHEMA_VERSION = "probity-spec-1"
SUPPORTED_SCHEMA_VERSIONS = frozenset({SPEC_SCHEMA_VERSION})

_FINGERPRINT_PATTERN = re.compile(r"^[0-9a-f]{64}$")


class SpecificationFormatError(ConfigurationError):
    """Raised when specification content is malformed."""

    pass


class SpecificationIntegrityError(ConfigurationError):
    """Raised when a specification's content fingerprint does not match."""

    pass


def _instant_to_text(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _instant_from_text(value: Any, field_name: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        instant = value
    else:
        try:
            instant = datetime.fromisoformat(str(value))
        except ValueError as e:
            raise SpecificationFormatError(f"Invalid {field_name}: {value!r}") from e
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant


def _section(data: dict[str, Any], field_name: str) -> dict[str, Any]:
    """Nested mapping under ``field_name``; absent or empty reads as ``{}``."""
    value = data.get(field_name) or {}
    if not isinstance(value, dict):
        raise SpecificationFormatError(
            f"Invalid {field_name}: expected a mapping, got {type(value).__name__}"
        )
    return value


def specification_to_dict(spec: ExecutionSpecification) -> dict[str, Any]:
    """Convert a specification to its serialized mapping, without fingerprint."""
    data: dict[str, Any] = {
        "schemaVersion": SPEC_SCHEMA_VERSION,
        "specId": spec.spec_id,
        "useCaseId": spec.use_case_id,
        "version": spec.version,
        "generatedAt": _instant_to_text(spec.generated_at),
        "approvedAt": _instant_to_text(spec.approved_at),
        "approvedBy": spec.approved_by,
        "approvalNotes": spec.approval_notes,
        "sourceBaselines": list(spec.source_baselines),
        "executionContext": dict(spec.execution_context),
        "requirements": {
            "minPassRate": spec.min_pass_rate,
            "successCriteria": spec.success_criteria,
        },
        "costEnvelope": spec.cost_envelope.to_dict(),
        "expiresInDays": spec.expires_in_days,
        "baselineEndTime": _instant_to_text(spec.baseline_end_time),
        "thresholdOrigin": spec.threshold_origin.value,
        "contractRef": spec.contract_ref,
        "intent": spec.intent.value,
    }
    if spec.factor_source is not None:
        data["factorSource"] = spec.factor_source.to_dict()
    return data


def specification_from_dict(data: dict[str, Any]) -> ExecutionSpecification:
    """Create a specification from its serialized mapping.

    Raises:
        SpecificationFormatError: If required fields are missing or malformed

    """
    if not isinstance(data, dict):
        raise SpecificationFormatError(f"Expected a mapping, got {type(data).__name__}")

    schema_version = data.get("schemaVersion")
    if schema_version not in SUPPORTED_SCHEMA_VERSIONS:
        raise SpecificationFormatError(f"Unsupported specification schema: {schema_version!r}")
    for required in ("specId", "useCaseId"):
        if not data.get(required):
            raise SpecificationFormatError(f"Missing required field: {required}")

    requirements = _section(data, "requirements")
    execution_context = _section(data, "executionContext")
    cost_envelope = _section(data, "costEnvelope")
    factor_source = _section(data, "factorSource")
    try:
        return ExecutionSpecification(
            spec_id=str(data["specId"]),
            use_case_id=str(data["useCaseId"]),
            version=int(data.get("version", 1)),
            generated_at=_instant_from_text(data.get("generatedAt"), "generatedAt"),
            approved_at=_instant_from_text(data.get("approvedAt"), "approvedAt"),
            approved_by=str(data.get("approvedBy") or ""),
            approval_notes=str(data.get("approvalNotes") or ""),
            source_baselines=tuple(str(b) for b in data.get("sourceBaselines") or ()),
            execution_context={str(k): str(v) for k, v in execution_context.items()},
            min_pass_rate=float(requirements.get("minPassRate", 1.0)),
            success_criteria=str(requirements.get("successCriteria") or ""),
            cost_envelope=CostEnvelope.from_dict(cost_envelope),
            expires_in_days=int(data.get("expiresInDays", 0)),
            baseline_end_time=_instant_from_text(data.get("baselineEndTime"), "baselineEndTime"),
            factor_source=FactorSourceMetadata.from_dict(factor_source) if factor_source else None,
            threshold_origin=ThresholdOrigin.parse(data.get("thresholdOrigin")),
            contract_ref=data.get("contractRef") or None,
            intent=TestIntent.parse(data.get("intent")),
        )
    except (TypeError, ValueError) as e:
        raise SpecificationFormatError(f"Invalid specification field: {e}") from e


def content_fingerprint(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical YAML of a mapping, ignoring any fingerprint."""
    content = {k: v for k, v in data.items() if k != "contentFingerprint"}
    canonical = yaml.safe_dump(content, sort_keys=True, default_flow_style=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def dumps_specification(spec: ExecutionSpecification) -> str:
    """Serialize a specification to YAML with its content fingerprint."""
    data = specification_to_dict(spec)
    data["contentFingerprint"] = content_fingerprint(data)
    return yaml.safe_dump(data, sort_keys=False)


def loads_specification(text: str, verify: bool = True) -> ExecutionSpecification:
    """Parse a YAML specification.

    Args:
        text: YAML content
        verify: Check the content fingerprint

    Returns:
        The parsed (not yet validated) specification

    Raises:
        SpecificationFormatError: If the YAML or its fields are malformed
        SpecificationIntegrityError: If the fingerprint is missing or wrong

    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise SpecificationFormatError(f"Invalid specification YAML: {e}") from e
    if not isinstance(data, dict):
        raise SpecificationFormatError("Specification YAML must be a mapping")

    if verify:
        recorded = data.get("contentFingerprint")
        if not isinstance(recorded, str) or not _FINGERPRINT_PATTERN.match(recorded):
            raise SpecificationIntegrityError(
                f"Specification {data.get('specId')!r} has no valid contentFingerprint"
            )
        actual = content_fingerprint(data)
        if actual != recorded:
            logger.warning(f"Fingerprint mismatch for specification {data.get('specId')!r}")
            raise SpecificationIntegrityError(
                f"Specification {data.get('specId')!r} was modified after generation: "
                f"fingerprint {recorded[:12]}... does not match content {actual[:12]}..."
            )

    return specification_from_dict(data)
