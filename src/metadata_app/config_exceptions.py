"""Configuration exceptions."""

class ConfigLoadError(Exception):
    """Raised when the configuration file cannot be read or parsed."""
    pass

class ConfigValidationError(Exception):
    """Raised when a configuration value is invalid."""
    pass
