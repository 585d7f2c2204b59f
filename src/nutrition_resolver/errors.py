"""Error taxonomy for nutrition resolution."""


class NutritionResolverError(Exception):
    """Base class for resolver errors."""


class ConfigurationError(NutritionResolverError):
    """Required upstream credentials are missing."""


class UpstreamUnavailable(NutritionResolverError):
    """An upstream service returned a non-success response or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UnparsableResponse(NutritionResolverError):
    """An upstream body did not contain the expected JSON."""