"""Central place for labmap default settings."""

# Fallback color for an empty colormap
EMPTY_COLORMAP_COLOR: tuple[float, float, float] = (0.0, 0.0, 0.0)

# Raster export
DEFAULT_TEXTURE_WIDTH: int = 1024
DEFAULT_TEXTURE_HEIGHT: int = 1

# Raster import (lossy: one control point per sample)
DEFAULT_IMAGE_SAMPLES: int = 11
IMAGE_SAMPLE_INSET: float = 0.01  # Keep samples inside [inset, 1 - inset]

# Gradient key lists hold at most this many color keys
MAX_GRADIENT_KEYS: int = 8

# ParaView XML attributes
XML_COLOR_SPACE: str = "CIELAB"
XML_INDEXED_LOOKUP: str = "false"
DEFAULT_COLORMAP_NAME: str = "labmap Colormap"
