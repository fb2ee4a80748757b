"""Exception hierarchy for the exporter."""


class ExporterError(Exception):
    """Base exception for all exporter errors."""
    pass


class ConfigError(ExporterError):
    """Raised when the configuration cannot be loaded or validated."""
    pass


class TokenError(ExporterError):
    """Raised when the OAuth token file is missing, malformed or expired."""
    pass


class OAuthError(ExporterError):
    """Raised when the OAuth authorization-code exchange fails."""
    pass


class RegisterError(ExporterError):
    """Raised when the register command cannot run."""
    pass


class SmartThingsAPIError(ExporterError):
    """Raised when a SmartThings API call fails."""
    pass


class SmartThingsAuthError(SmartThingsAPIError):
    """Raised when SmartThings rejects the OAuth token."""
    pass
