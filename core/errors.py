"""
Error taxonomy for document loading.

ConfigurationError is raised when no usable document source was supplied;
LoadError covers everything that goes wrong while resolving or decoding a
document that *was* supplied.
"""


class ConfigurationError(ValueError):
    """No usable document source (neither a reference nor raw data)."""


class LoadError(RuntimeError):
    """Document resolution or page decode failed."""
