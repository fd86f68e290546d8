from fastapi import status

from app.core.enums import ErrorCode


class ServiceError(Exception):
    """Base exception for unexpected service layer failures.

    Expected domain conditions are returned as ErrorOutcome values instead; this is
    raised for things the caller cannot branch around (token failures, partial writes).
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        code: ErrorCode = ErrorCode.SERVER_ERROR,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
