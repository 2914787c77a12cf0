"""Error taxonomy for workflow operations.

Every error carries a machine-distinguishable ``kind`` so the tool boundary can
return a structured result instead of letting exceptions escape.
"""

from __future__ import annotations


class AirdropError(Exception):
    """Base class for errors surfaced to tool callers."""

    kind = "airdrop_error"

    def __init__(self, message: str, *, details: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_json(self) -> dict[str, object]:
        return {"kind": self.kind, "message": self.message, "details": self.details}


class ValidationError(AirdropError):
    """Malformed or out-of-contract input. The caller should resubmit."""

    kind = "validation_error"


class PreconditionError(AirdropError):
    """A workflow step was invoked before its prerequisite step."""

    kind = "precondition_error"

    def __init__(self, message: str, *, missing: str | None = None) -> None:
        super().__init__(message, details={"missing": missing} if missing else None)
        self.missing = missing


class ExecutionError(AirdropError):
    """An external collaborator (ledger, custody, notification) failed."""

    kind = "execution_error"


class UnknownOperationError(AirdropError):
    """The requested operation name is not part of the tool surface."""

    kind = "method_not_found"

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}", details={"name": name})
        self.name = name
