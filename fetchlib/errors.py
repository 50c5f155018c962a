class FetchError(Exception):
    kind = "fetch"
    default_message = "Error -> Fetch failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidURLError(FetchError):
    kind = "invalid_url"
    default_message = "Error -> URL invalidation"


class InvalidHttpResponseError(FetchError):
    kind = "invalid_http_response"
    default_message = "Error -> Response is not the Http Response Object"


class InvalidDataError(FetchError):
    kind = "invalid_data"
    default_message = "Error -> Data invalidation"


class InvalidResponseError(FetchError):
    kind = "invalid_response"

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"Error -> Response invalidation with Http Status Code: {status_code}")


class RequestCancelledError(FetchError):
    kind = "cancelled"
    default_message = "Error -> Request cancelled"


def error_kind(error: BaseException) -> str:
    """Short label for an error, used by metrics and logs."""
    if isinstance(error, FetchError):
        return error.kind
    return "transport"
