class PipelineError(Exception):
    """Base exception for the route analytics pipeline."""
    pass


class ConfigurationError(PipelineError):
    """Raised when a required setting (database, destination URL) is missing."""
    pass


class RouteNotFoundError(PipelineError):
    """Raised when a route id does not exist in the primary store."""

    def __init__(self, route_id):
        super().__init__(f"Route with ID {route_id} not found")
        self.route_id = route_id


class ProviderError(PipelineError):
    """Raised when the routing provider fails or returns a non-OK status."""

    def __init__(self, message: str, status=None):
        super().__init__(message)
        self.status = status


class DestinationError(PipelineError):
    """Raised for non-transient time-series store failures (not retried)."""
    pass


class NarrativeError(PipelineError):
    """Raised when the narrative collaborator cannot produce a reply."""
    pass
