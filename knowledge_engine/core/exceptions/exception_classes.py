from typing import Sequence

from knowledge_engine.core.exceptions.error_messages import ErrorKey


class AppException(Exception):
    """
        Application-specific exception carrying an error key and HTTP status.

        The error key selects the user-facing message from the error messages
        module; `error_variables` fill its placeholders.

        Attributes:
            error_key (ErrorKey): Key of the user-facing message.
            status_code (int): The HTTP status code associated with the error (default: 400).
            error_detail (str): Internal detail, logged but only returned in dev.

        Example:
            ```python
            raise AppException(ErrorKey.KNOWLEDGE_NOT_FOUND, 404)
            ```
        """
    def __init__(self, error_key: ErrorKey, status_code=400, error_detail="", error_obj=None,
                 error_variables: Sequence[str] = ()):
        self.error_key: ErrorKey = error_key
        self.status_code = status_code
        self.error_detail = error_detail
        self.error_obj = error_obj
        self.error_variables = [str(v) for v in error_variables]
        super().__init__(error_key.value)


class NotFoundError(AppException):
    """Absent resource, or a resource owned by another agent."""

    def __init__(self, error_key: ErrorKey = ErrorKey.NOT_FOUND, error_detail="", **kwargs):
        super().__init__(error_key, status_code=404, error_detail=error_detail, **kwargs)


class InvalidArgumentError(AppException):
    def __init__(self, error_key: ErrorKey, error_detail="", **kwargs):
        super().__init__(error_key, status_code=400, error_detail=error_detail, **kwargs)


class UnsupportedConfigurationError(AppException):
    def __init__(self, error_key: ErrorKey, error_detail="", **kwargs):
        super().__init__(error_key, status_code=422, error_detail=error_detail, **kwargs)


class UpstreamFailureError(AppException):
    """Provider or index call failed; the caller may retry."""

    def __init__(self, error_key: ErrorKey, status_code=502, error_detail="", **kwargs):
        super().__init__(error_key, status_code=status_code, error_detail=error_detail, **kwargs)
