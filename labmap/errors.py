"""Colormap import/export errors."""


class ColormapError(Exception):
    """Base class for colormap errors."""
    pass


class ParseError(ColormapError):
    """Colormap source is malformed (bad XML, missing attribute, undecodable image)."""
    pass


class ColormapIOError(ColormapError):
    """Backing file could not be read or written."""
    pass
