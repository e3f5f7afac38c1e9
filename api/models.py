"""
API request and response models for Forkline REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in accounts/models.py,
which own the internal domain representation. Route handlers map between the two.

Separation of concerns: accounts/ models = domain truth; api/ models = API contract.
"""

from enum import Enum
from typing import Any, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    customer = "customer"
    staff = "staff"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class EnsureUserRequest(BaseModel):
    """Request body for POST /api/ensure-user.

    id is the identity provider's user id. Unknown keys are dropped rather
    than rejected; role may be omitted (or null) and then defaults to
    customer downstream.
    """

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1, description="Identity provider user id.")
    email: str
    role: Optional[RoleEnum] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        """Reject anything that is not a bare address; store what was sent."""
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError as exc:
            raise ValueError(f"value is not a valid email address: {exc}") from None
        return value


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class EnsureUserResponse(BaseModel):
    ok: bool = True


class ErrorResponse(BaseModel):
    """Uniform error envelope for every non-2xx JSON response.

    details is only present for validation failures.
    """

    error: str
    details: Optional[dict[str, Any]] = None

    def as_content(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str]


# ---------------------------------------------------------------------------
# Validation detail
# ---------------------------------------------------------------------------


def error_tree(errors: list[dict[str, Any]]) -> dict[str, Any]:
    """Arrange pydantic error dicts as a tree keyed by top-level field.

    Shape:
        {"errors": [<form-level messages>],
         "properties": {"email": {"errors": ["value is not a valid email address: ..."]}}}

    Errors without a location (e.g. the body is not an object) go in the
    top-level list. Nested locations are attributed to their first segment.
    """
    tree: dict[str, Any] = {"errors": []}
    properties: dict[str, dict[str, list[str]]] = {}
    for err in errors:
        loc = [part for part in err.get("loc", ()) if part != "body"]
        if not loc:
            tree["errors"].append(err["msg"])
            continue
        properties.setdefault(str(loc[0]), {"errors": []})["errors"].append(err["msg"])
    if properties:
        tree["properties"] = properties
    return tree


def validation_details(exc: ValidationError) -> dict[str, Any]:
    return error_tree(exc.errors(include_url=False))
