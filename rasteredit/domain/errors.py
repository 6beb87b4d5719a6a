from __future__ import annotations


class RasterEditError(Exception):
    """Base class for every failure raised by the edit engine."""


class DecodeError(RasterEditError):
    """Input bytes are malformed or in an unsupported format."""


class ContextUnavailable(RasterEditError):
    """A drawing surface (output pixel buffer) could not be acquired."""


class RangeError(RasterEditError, ValueError):
    """Crop/resize bounds or numeric parameters are out of range."""


class EncodeError(RasterEditError):
    """The image could not be serialized to the requested format."""


class RemoteUnavailable(RasterEditError):
    """Every configured remote enhancement provider failed."""
