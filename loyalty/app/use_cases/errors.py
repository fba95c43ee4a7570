"""Conversion of domain exceptions into use case errors"""

from libs.result import Error
from loyalty.domain.errors import DomainError


def to_error(exc: DomainError) -> Error:
    return Error(
        code=exc.code,
        message=exc.message,
        reason=type(exc).__name__,
        details=dict(exc.details),
    )
