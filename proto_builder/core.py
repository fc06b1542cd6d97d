class ProtoBuilderError(Exception):
    """General proto builder exception occurred."""


class ConfigError(ProtoBuilderError):
    """The type map configuration is malformed."""


class CheckError(ProtoBuilderError):
    """An internal consistency check failed."""


class DescriptorError(ProtoBuilderError):
    """A schema element could not be loaded or resolved."""


class NotFoundError(ProtoBuilderError):
    """A required file or configuration entry does not exist."""
