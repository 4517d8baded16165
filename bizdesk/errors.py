"""
bizdesk/errors.py

Exception taxonomy for the ledger and reconciliation services.

- Validation errors: raised before any write.
- PersistenceError: a required write failed; the transaction was rolled back.
- ExtractionError: the PDF extraction collaborator failed or returned an unusable payload.
- SupplierResolutionError: a parsed supplier name matched no supplier or more than one.

Degraded GRV side effects (stock/supplier updates) are NOT raised; they are logged and
reported on GrvIntakeResult.

The app factory maps every BizdeskError to a JSON response using http_status.
"""

from __future__ import annotations


class BizdeskError(Exception):
    """Base class for all domain errors."""

    http_status = 500

    def __init__(self, message: str, *, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.__class__.__name__, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(BizdeskError):
    http_status = 400


class DocumentValidationError(ValidationError):
    pass


class PaymentValidationError(ValidationError):
    pass


class GrvValidationError(ValidationError):
    pass


class MasterDataValidationError(ValidationError):
    pass


class RecordNotFoundError(BizdeskError):
    http_status = 404

    def __init__(self, model_name: str, record_id):
        super().__init__(f"{model_name} {record_id} not found.", details={"id": record_id})
        self.model_name = model_name
        self.record_id = record_id


class InvalidTransitionError(BizdeskError):
    http_status = 409


class PersistenceError(BizdeskError):
    http_status = 500


class ExtractionError(BizdeskError):
    http_status = 502


class SupplierResolutionError(BizdeskError):
    http_status = 422

    def __init__(self, message: str, *, supplier_name: str, candidates: list | None = None):
        super().__init__(
            message,
            details={"supplier_name": supplier_name, "candidates": candidates or []},
        )
        self.supplier_name = supplier_name
        self.candidates = candidates or []
