"""Error taxonomy shared by the client, the pipeline and the gateway proxy."""


class NexusError(Exception):
    """Base class for all Nexus errors."""


class ValidationError(NexusError):
    """Bad local input (empty submit, unsupported attachment). Never sent upstream."""


class ParseError(NexusError):
    """Malformed JSON from a helper endpoint. Always recovered locally."""


class TurnCancelled(NexusError):
    """The user stopped a turn. Triggers the partial-save path, not an error UI."""


class GatewayError(NexusError):
    """Failure reported by (or while reaching) the completion gateway."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class AuthError(GatewayError):
    """Missing or invalid credential."""

    status_code = 401

    def __init__(self, message: str = "Invalid API key", requires_setup: bool = True):
        super().__init__(message)
        self.requires_setup = requires_setup


class RateLimitError(GatewayError):
    status_code = 429


class NetworkError(GatewayError):
    status_code = 503


class UnknownGatewayError(GatewayError):
    status_code = 500
