"""Error taxonomy for the report pipeline.

Every collaborator translates its library's exceptions into one of these at
its boundary, so the HTTP layer only has to map a class to a status code.
"""
from typing import Optional


class RepairIntelError(Exception):
    """Base error. ``stage`` is the last pipeline stage reached before it was raised."""
    status_code: int = 500

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationFailure(RepairIntelError):
    """Missing or malformed submission data (form fields, upload)."""
    status_code = 400


class PaymentRequired(ValidationFailure):
    status_code = 402


class UpstreamServiceFailure(RepairIntelError):
    """An external collaborator (Claude, Stripe, SMTP) failed or timed out."""
    status_code = 502

    def __init__(self, message: str, service: str = "upstream", stage: Optional[str] = None):
        super().__init__(message, stage=stage)
        self.service = service


class MalformedResponse(UpstreamServiceFailure):
    """Claude answered, but not with the JSON estimate we asked for."""

    def __init__(self, message: str, raw: str = "", stage: Optional[str] = None):
        super().__init__(message, service="anthropic", stage=stage)
        self.raw = raw
