from fastapi import status


class StarTraderError(Exception):
    """Base class for errors raised while dispatching tools or touching the cache."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "detail": self.message}


class UnknownToolError(StarTraderError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, name: str):
        super().__init__(f"Function {name} is not defined.")
        self.name = name


class MissingParameterError(StarTraderError):
    status_code = 422

    def __init__(self, name: str):
        super().__init__(f"At least one parameter is required for function {name}.")
        self.name = name


class UpstreamFetchError(StarTraderError):
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, url: str, upstream_status: int | None = None):
        if upstream_status is not None:
            text = f"Failed to fetch {url}: {upstream_status} {message}"
        else:
            text = f"Failed to fetch {url}: {message}"
        super().__init__(text)
        self.url = url
        self.upstream_status = upstream_status

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["upstream_status"] = self.upstream_status
        return data


class CacheStoreError(StarTraderError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, operation: str, key: str | None, message: str):
        target = f" {key}" if key else ""
        super().__init__(f"Cache {operation}{target} failed: {message}")
        self.operation = operation
        self.key = key
