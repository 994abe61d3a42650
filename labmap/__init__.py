"""labmap - colormaps with control points interpolated in CIE Lab.

Example:
    from labmap import Colormap

    cmap = Colormap([(0.0, (0.0, 0.0, 0.5)), (1.0, (1.0, 0.9, 0.2))])
    cmap.add_control_point(0.3, (0.8, 0.1, 0.1))
    rgb = cmap.lookup_color(0.42)
    swatch = cmap.to_image(256, 16)
"""

from labmap.colormap import Colormap, ControlPoint, GradientKey
from labmap.errors import ColormapError, ParseError, ColormapIOError

__all__ = [
    'Colormap',
    'ControlPoint',
    'GradientKey',
    'ColormapError',
    'ParseError',
    'ColormapIOError',
]
