"""Custom exception classes for the application."""


class PriceRadarException(Exception):
    """Base exception for all Price Radar errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class NotFoundError(PriceRadarException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} with identifier '{identifier}' not found")


class NotActiveError(PriceRadarException):
    """Raised when an on-demand run is requested for a paused or errored monitor."""

    def __init__(self, monitor_id: str, status: str):
        self.monitor_id = monitor_id
        self.status = status
        super().__init__(f"Monitor '{monitor_id}' is not active (status: {status})")


class MalformedModelResponseError(PriceRadarException):
    """Raised when a model reply was received but could not be parsed.

    Always recovered inside the extraction engine.
    """


class FetchError(PriceRadarException):
    """Raised when a single URL could not be fetched."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"Fetch failed for {url}: {message}")


class NoContentFetchedError(PriceRadarException):
    """Raised when every URL built for a monitor failed to fetch."""

    def __init__(self, monitor_id: str, url_count: int):
        self.monitor_id = monitor_id
        self.url_count = url_count
        super().__init__(f"No content fetched for monitor '{monitor_id}' ({url_count} URLs failed)")


class PersistenceError(PriceRadarException):
    """Raised when the store cannot be read or written."""


class ConfigurationMissingError(PriceRadarException):
    """Raised when a required credential or service setting is absent."""

    def __init__(self, setting: str):
        self.setting = setting
        super().__init__(f"Required setting '{setting}' is not configured")


class MonitorRunFailedError(PriceRadarException):
    """Raised to API callers when an on-demand run failed after being recorded."""

    def __init__(self, monitor_id: str, message: str):
        self.monitor_id = monitor_id
        super().__init__(f"Monitor '{monitor_id}' run failed: {message}")


class ModelUnavailableError(PriceRadarException):
    """Raised to API callers when the language model call itself failed."""
