"""
mediagate/features/purchases/validation.py

Boundary validation for purchase requests.

Returns a ValidationResult instead of raising so callers (HTTP routes,
webhooks, admin scripts) choose how to surface the errors.
"""

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from mediagate.models.entitlement import AccessType


class PurchaseRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    content_id: str = Field(min_length=1)
    access_type: AccessType = AccessType.TEMPORARY
    duration_days: Optional[int] = Field(default=None, gt=0)
    email: Optional[str] = None

    @model_validator(mode="after")
    def _duration_matches_access_type(self):
        if self.access_type == AccessType.PERMANENT and self.duration_days is not None:
            raise ValueError("duration_days must be omitted for PERMANENT access")
        return self


@dataclass
class ValidationResult:
    ok: bool
    value: Optional[PurchaseRequest] = None
    errors: List[str] = field(default_factory=list)


def _format_error(err: dict) -> str:
    loc = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
    msg = err.get("msg", "invalid")
    return f"{loc}: {msg}" if loc else msg


def validate_purchase_request(payload: Any) -> ValidationResult:
    if not isinstance(payload, Mapping):
        return ValidationResult(ok=False, errors=["payload must be an object"])
    try:
        request = PurchaseRequest.model_validate(dict(payload))
    except ValidationError as e:
        return ValidationResult(ok=False, errors=[_format_error(err) for err in e.errors()])
    return ValidationResult(ok=True, value=request)
