"""
Platform-wide exception hierarchy.

Services raise these and nothing else for expected failures; every HTTP
blueprint registers one handler per type so status codes stay consistent:

    NotFoundError    → 404  generic "<Resource> not found"
    ValidationError  → 422  message verbatim
    ConflictError    → 409  message verbatim

Anything else is an internal error: 500 with a generic message, detail logged.

Usage:
    from intake.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Blueprint", resource_id=42, company_id=7)
    raise ValidationError("Blueprint must have at least one section")
"""


class NotFoundError(Exception):
    """Raised when a requested entity does not exist within the caller's company.

    Used for BOTH genuinely missing rows AND rows owned by another company.
    The two cases are deliberately indistinguishable to the caller; only the
    log line carries the id and the company that was enforced.

    Args:
        resource: Human-readable entity name (e.g. "Blueprint", "Suggestion").
        resource_id: The PK that was looked up. Logged, never returned.
        company_id: Optional scope that was enforced. Logged, never returned.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        company_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.company_id = company_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if company_id is not None:
            msg += f" (company={company_id})"
        super().__init__(msg)

    @property
    def public_message(self) -> str:
        return f"{self.resource} not found"


class ValidationError(Exception):
    """Raised when input is missing/malformed or a business precondition fails.

    Examples: empty blueprint name, publishing a blueprint without sections,
    publishing an archived blueprint.

    Args:
        message: Human-readable explanation, surfaced to the caller verbatim.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation clashes with existing state.

    Duplicate blueprint/session names, deleting a blueprint that sessions
    still reference, editing the structure of a blueprint sessions are bound to.

    Args:
        message: Human-readable explanation, surfaced to the caller verbatim.
        resource: Optional entity name, for logs.
    """

    def __init__(self, message: str, resource: str | None = None) -> None:
        self.resource = resource
        super().__init__(message)
