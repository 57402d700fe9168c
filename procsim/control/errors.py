"""Controller error taxonomy."""


class InvalidArgument(ValueError):
    """A caller passed an argument that violates the controller contract."""


class ConfigurationError(InvalidArgument):
    """Invalid tuning or limit configuration (e.g. min >= max, negative gains)."""
