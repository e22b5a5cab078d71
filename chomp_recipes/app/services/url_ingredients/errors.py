"""Outward error taxonomy for the recipe URL ingredients API."""

from typing import Dict, Literal

from chomp_recipes.app.schemas.ingredients import ErrorDetail, ErrorResponse

ApiErrorCode = Literal[
    "invalid_url",
    "unsupported_content",
    "unauthorized",
    "not_found",
    "fetch_timeout",
    "content_too_large",
    "parse_failed",
    "rate_limited",
    "server_error",
]

ERROR_STATUS_CODES: Dict[str, int] = {
    "invalid_url": 400,
    "unsupported_content": 400,
    "unauthorized": 401,
    "not_found": 404,
    "fetch_timeout": 408,
    "content_too_large": 413,
    "parse_failed": 422,
    "rate_limited": 429,
    "server_error": 500,
}

_STATUS_TO_CODE = {
    401: "unauthorized",
    403: "unauthorized",
    404: "not_found",
    405: "not_found",
    408: "fetch_timeout",
    413: "content_too_large",
    422: "parse_failed",
    429: "rate_limited",
}

GENERIC_SERVER_ERROR_MESSAGE = "An unexpected error occurred"


class IngredientsApiError(Exception):
    """Raised anywhere in the request path; rendered by the app's exception handler."""

    def __init__(self, code: ApiErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = ERROR_STATUS_CODES[code]


def get_status_code_for_error(code: str) -> int:
    return ERROR_STATUS_CODES.get(code, 500)


def error_code_for_status(status_code: int) -> ApiErrorCode:
    if status_code in _STATUS_TO_CODE:
        return _STATUS_TO_CODE[status_code]
    if 400 <= status_code < 500:
        return "invalid_url"
    return "server_error"


def build_error_response(code: str, message: str) -> dict:
    return ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump()
