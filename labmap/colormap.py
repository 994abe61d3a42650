"""Colormaps: scalar -> color transfer functions interpolated in CIE Lab.

A Colormap is defined by control points that do not need to be evenly
spaced. Colors between two control points are blended in Lab space, which
avoids the muddy gray transitions of a plain RGB lerp.

Colormaps can be built from / written to:
- ParaView XML (the format sciviscolor.org exports)
- a raster image holding a left-to-right gradient (lossy on import)
- a list of at most 8 gradient keys (lossy on export when resampling)
"""

from __future__ import annotations

import bisect
import logging
import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Iterable, Iterator, Sequence, Union

import numpy as np
from PIL import Image
from scipy.ndimage import map_coordinates

from labmap import defaults
from labmap.colorspace import rgb_to_lab, lab_to_rgb, rgb_array_to_lab, lab_array_to_rgb
from labmap.errors import ParseError, ColormapIOError

logger = logging.getLogger(__name__)

RGB = tuple[float, float, float]
RGBA = tuple[float, float, float, float]
PathLike = Union[str, Path]

# Pillow modes for 16-bit grayscale PNGs ("I" is what older Pillow opens them as)
_GRAY16_MODES = ("I;16", "I;16B", "I;16L", "I")


@dataclass(frozen=True)
class ControlPoint:
    """A fixed (value, color) anchor of a colormap."""
    value: float
    color: RGB


@dataclass(frozen=True)
class GradientKey:
    """One key of a coarse gradient (position in [0, 1], RGBA color)."""
    position: float
    color: RGBA


def _coerce_color(color: Sequence[float]) -> RGB:
    channels = [float(c) for c in color]
    if len(channels) not in (3, 4):
        raise ValueError(f"Color must have 3 or 4 channels, got {len(channels)}")
    # Alpha is dropped, colormaps are opaque
    return (channels[0], channels[1], channels[2])


class Colormap:
    """Scalar -> RGB transfer function with Lab interpolation.

    Control points are kept sorted by value with at most one point per value.
    Point identity is exact float equality: adding at a value that compares
    equal to an existing one replaces it, and removal needs the same value.

    Not thread-safe. Lookups never mutate, so concurrent readers are fine as
    long as nobody adds or removes points meanwhile; use copy() to hand out a
    snapshot.
    """

    def __init__(
        self,
        control_points: Iterable[tuple[float, Sequence[float]]] | None = None,
        name: str | None = None,
    ):
        self.name = name
        self._points: list[ControlPoint] = []
        # Parallel list of values for bisect
        self._values: list[float] = []
        if control_points is not None:
            for value, color in control_points:
                self.add_control_point(value, color)

    # === Control points ===

    def add_control_point(self, value: float, color: Sequence[float]) -> None:
        """Insert a control point, replacing any point at exactly the same value.

        Args:
            value: Data value of the point (must be finite)
            color: RGB or RGBA channels in [0, 1]; alpha is ignored
        """
        value = float(value)
        if not math.isfinite(value):
            raise ValueError(f"Control point value must be finite, got {value}")
        rgb = _coerce_color(color)

        self.remove_control_point(value, warn_on_not_found=False)
        idx = bisect.bisect_left(self._values, value)
        self._values.insert(idx, value)
        self._points.insert(idx, ControlPoint(value, rgb))

    def remove_control_point(self, value: float, warn_on_not_found: bool = True) -> bool:
        """Remove the control point at exactly ``value``.

        Returns:
            True if a point was removed. A miss is not an error: it returns
            False and optionally logs a warning.
        """
        value = float(value)
        idx = bisect.bisect_left(self._values, value)
        if idx < len(self._values) and self._values[idx] == value:
            del self._values[idx]
            del self._points[idx]
            return True

        if warn_on_not_found:
            logger.warning("No control point with value %r to remove", value)
        return False

    @property
    def control_points(self) -> tuple[ControlPoint, ...]:
        return tuple(self._points)

    @property
    def values(self) -> tuple[float, ...]:
        return tuple(self._values)

    def copy(self) -> Colormap:
        """Independent snapshot of this colormap."""
        clone = Colormap(name=self.name)
        clone._points = list(self._points)
        clone._values = list(self._values)
        return clone

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[ControlPoint]:
        return iter(tuple(self._points))

    def __eq__(self, other: object) -> bool:
        # The name is a label only; two maps are equal when their points are
        if not isinstance(other, Colormap):
            return NotImplemented
        return self._points == other._points

    def __repr__(self) -> str:
        return f"Colormap(name={self.name!r}, points={len(self._points)})"

    # === Lookup ===

    def lookup_color(self, value: float) -> RGB:
        """Look up the color at ``value``, interpolating in CIE Lab.

        Values outside the control point range are clamped to the first/last
        color. An empty colormap is black everywhere.
        """
        points = self._points
        if not points:
            return defaults.EMPTY_COLORMAP_COLOR
        if len(points) == 1:
            return points[0].color

        value = float(value)
        if math.isnan(value):
            raise ValueError("Cannot look up a NaN value")
        if value >= points[-1].value:
            return points[-1].color
        if value <= points[0].value:
            return points[0].color

        # points[i - 1].value <= value < points[i].value
        i = bisect.bisect_right(self._values, value)
        lo, hi = points[i - 1], points[i]
        alpha = (value - lo.value) / (hi.value - lo.value)

        lab0 = rgb_to_lab(*lo.color)
        lab1 = rgb_to_lab(*hi.color)
        lab = [c0 * (1.0 - alpha) + c1 * alpha for c0, c1 in zip(lab0, lab1)]
        r, g, b = lab_to_rgb(*lab)
        return (float(r), float(g), float(b))

    def lookup_colors(self, values: np.ndarray | Sequence[float]) -> np.ndarray:
        """Vectorized lookup_color.

        Args:
            values: Array of data values, any shape

        Returns:
            float64 array with shape values.shape + (3,)
        """
        values = np.asarray(values, dtype=np.float64)
        out_shape = values.shape + (3,)
        points = self._points
        if not points:
            return np.broadcast_to(np.array(defaults.EMPTY_COLORMAP_COLOR), out_shape).copy()
        if len(points) == 1:
            return np.broadcast_to(np.array(points[0].color), out_shape).copy()
        if np.isnan(values).any():
            raise ValueError("Cannot look up a NaN value")

        positions = np.array(self._values, dtype=np.float64)
        colors = np.array([p.color for p in points], dtype=np.float64)
        lab = rgb_array_to_lab(colors)

        flat = values.ravel()
        idx = np.clip(np.searchsorted(positions, flat, side="right"), 1, len(points) - 1)
        v0 = positions[idx - 1]
        v1 = positions[idx]
        alpha = np.clip((flat - v0) / (v1 - v0), 0.0, 1.0)[:, None]

        rgb = lab_array_to_rgb(lab[idx - 1] * (1.0 - alpha) + lab[idx] * alpha)
        rgb[flat <= positions[0]] = colors[0]
        rgb[flat >= positions[-1]] = colors[-1]
        return rgb.reshape(out_shape)

    # === XML (ParaView format, lossless) ===

    @classmethod
    def from_xml(cls, xml_text: str | bytes) -> Colormap:
        """Load a colormap from ParaView XML, as exported by sciviscolor.org.

        Accepts either ``<ColorMaps><ColorMap>...</ColorMap></ColorMaps>`` or a
        bare ``<ColorMap>`` root. Each ``<Point x r g b/>`` child becomes one
        control point.

        Raises:
            ParseError: Malformed XML or a Point with a missing/non-numeric attribute
        """
        try:
            root = ET.fromstring(xml_text)
        except ET.ParseError as e:
            raise ParseError(f"Malformed colormap XML: {e}") from e

        if root.tag == "ColorMaps":
            node = root.find("ColorMap")
        elif root.tag == "ColorMap":
            node = root
        else:
            node = None
        if node is None:
            raise ParseError(f"No <ColorMap> element found (root is <{root.tag}>)")

        cmap = cls(name=node.get("name"))
        for point in node.findall("Point"):
            value = _float_attr(point, "x")
            color = (_float_attr(point, "r"), _float_attr(point, "g"), _float_attr(point, "b"))
            cmap.add_control_point(value, color)

        logger.debug("Loaded colormap %r with %d points from XML", cmap.name, len(cmap))
        return cmap

    @classmethod
    def from_xml_file(cls, filepath: PathLike) -> Colormap:
        """Load a colormap from a ParaView XML file.

        A <ColorMap> without a name attribute is named after the file.
        """
        cmap = cls.from_xml(_read_bytes(filepath))
        if cmap.name is None:
            cmap.name = Path(filepath).stem
        return cmap

    def to_xml(self) -> str:
        """Serialize to ParaView XML, points in ascending order."""
        root = ET.Element("ColorMaps")
        cmap_node = ET.SubElement(root, "ColorMap", {
            "space": defaults.XML_COLOR_SPACE,
            "indexedLookup": defaults.XML_INDEXED_LOOKUP,
            "name": self.name if self.name is not None else defaults.DEFAULT_COLORMAP_NAME,
        })
        for pt in self._points:
            # repr keeps every float digit so the file loads back exactly
            ET.SubElement(cmap_node, "Point", {
                "r": repr(pt.color[0]),
                "g": repr(pt.color[1]),
                "b": repr(pt.color[2]),
                "x": repr(pt.value),
            })
        ET.indent(root)
        return ET.tostring(root, encoding="unicode")

    def to_xml_file(self, filepath: PathLike) -> None:
        _write_bytes(filepath, self.to_xml().encode("utf-8"))

    # === Raster images ===

    @classmethod
    def from_image(
        cls,
        image: np.ndarray,
        num_samples: int = defaults.DEFAULT_IMAGE_SAMPLES,
        name: str | None = None,
    ) -> Colormap:
        """Build a colormap from an image holding a left-to-right gradient.

        LOSSY: the gradient is sampled at ``num_samples + 1`` evenly spaced
        positions along the horizontal midline, and each sample becomes a
        control point. Detail between samples is lost.

        Args:
            image: Pixel array with shape (H, W, 3) or (H, W, 4); floats in
                [0, 1] or unsigned integers (full range)
            num_samples: Number of intervals between samples
            name: Optional colormap name

        Returns:
            Colormap with control points keyed by normalized x position
        """
        if num_samples < 1:
            raise ValueError("num_samples must be at least 1")
        pixels = _image_to_float(image)

        inset = defaults.IMAGE_SAMPLE_INSET
        positions = np.clip(np.arange(num_samples + 1) / num_samples, inset, 1.0 - inset)
        samples = _sample_bilinear(pixels, positions, 0.5)

        cmap = cls(name=name)
        for pos, color in zip(positions, samples):
            cmap.add_control_point(float(pos), color)

        logger.debug(
            "Sampled %d control points from %dx%d image",
            len(cmap), pixels.shape[1], pixels.shape[0],
        )
        return cmap

    @classmethod
    def from_png_file(
        cls,
        filepath: PathLike,
        num_samples: int = defaults.DEFAULT_IMAGE_SAMPLES,
    ) -> Colormap:
        """Load a colormap from a PNG gradient. LOSSY, see from_image."""
        data = _read_bytes(filepath)
        try:
            with Image.open(BytesIO(data)) as img:
                if img.mode in _GRAY16_MODES:
                    # convert() would clip 16-bit samples at 255
                    gray = np.clip(np.asarray(img), 0, 65535).astype(np.uint16)
                    pixels = np.stack([gray, gray, gray], axis=-1)
                else:
                    pixels = np.asarray(img.convert("RGBA"))
        except OSError as e:
            raise ParseError(f"Cannot decode image {filepath}: {e}") from e
        return cls.from_image(pixels, num_samples=num_samples, name=Path(filepath).stem)

    def to_image(
        self,
        width: int = defaults.DEFAULT_TEXTURE_WIDTH,
        height: int = defaults.DEFAULT_TEXTURE_HEIGHT,
    ) -> np.ndarray:
        """Render the colormap as a horizontal gradient swatch.

        Column ``col`` holds ``lookup_color(col / (width - 1))`` and every row
        is identical.

        Returns:
            float32 RGBA array with shape (height, width, 4), alpha = 1
        """
        if width <= 0 or height <= 0:
            raise ValueError(f"Image size must be positive, got {width}x{height}")

        if width == 1:
            positions = np.zeros(1, dtype=np.float64)
        else:
            positions = np.arange(width, dtype=np.float64) / (width - 1)

        row = np.ones((width, 4), dtype=np.float32)
        row[:, :3] = self.lookup_colors(positions)
        return np.tile(row[np.newaxis], (height, 1, 1))

    def to_png_file(
        self,
        filepath: PathLike,
        width: int = defaults.DEFAULT_TEXTURE_WIDTH,
        height: int = defaults.DEFAULT_TEXTURE_HEIGHT,
    ) -> None:
        """Save the gradient swatch as an 8-bit RGBA PNG."""
        rgba = np.round(self.to_image(width, height) * 255.0).astype(np.uint8)
        buffer = BytesIO()
        Image.fromarray(rgba).save(buffer, format="PNG")
        _write_bytes(filepath, buffer.getvalue())

    # === Gradient keys ===

    @classmethod
    def from_gradient_keys(
        cls,
        keys: Iterable[GradientKey | tuple[float, Sequence[float]]],
    ) -> Colormap:
        """Build a colormap from at most 8 gradient keys, one point per key."""
        keys = list(keys)
        if len(keys) > defaults.MAX_GRADIENT_KEYS:
            raise ValueError(
                f"Gradient key lists hold at most {defaults.MAX_GRADIENT_KEYS} keys, got {len(keys)}"
            )

        cmap = cls()
        for key in keys:
            if isinstance(key, GradientKey):
                cmap.add_control_point(key.position, key.color)
            else:
                position, color = key
                cmap.add_control_point(position, color)
        return cmap

    @property
    def fits_gradient_keys(self) -> bool:
        """True when to_gradient_keys() is lossless."""
        return len(self._points) <= defaults.MAX_GRADIENT_KEYS

    def to_gradient_keys(self) -> list[GradientKey]:
        """Convert to a list of at most 8 gradient keys.

        Up to 8 control points are emitted as-is. With more, the colormap is
        LOSSY-resampled at 8 equidistant positions over [0, 1] (endpoints
        included) so the overall look is kept instead of truncating points.
        """
        if self.fits_gradient_keys:
            return [GradientKey(pt.value, pt.color + (1.0,)) for pt in self._points]

        last = defaults.MAX_GRADIENT_KEYS - 1
        logger.info(
            "Resampling %d control points to %d gradient keys",
            len(self._points), defaults.MAX_GRADIENT_KEYS,
        )
        keys = []
        for k in range(last + 1):
            position = k / last
            keys.append(GradientKey(position, self.lookup_color(position) + (1.0,)))
        return keys

    # === Files ===

    @classmethod
    def from_file(cls, filepath: PathLike) -> Colormap:
        """Load a colormap from a .xml or .png file (PNG loading is lossy)."""
        suffix = Path(filepath).suffix.lower()
        if suffix == ".xml":
            return cls.from_xml_file(filepath)
        if suffix == ".png":
            return cls.from_png_file(filepath)
        raise ParseError(f"Colormap must be a .png or a .xml file: {filepath}")


def _float_attr(node: ET.Element, attr: str) -> float:
    raw = node.get(attr)
    if raw is None:
        raise ParseError(f"<{node.tag}> is missing attribute '{attr}'")
    try:
        value = float(raw)
    except ValueError as e:
        raise ParseError(f"<{node.tag}> attribute '{attr}' is not a number: {raw!r}") from e
    if not math.isfinite(value):
        raise ParseError(f"<{node.tag}> attribute '{attr}' is not finite: {raw!r}")
    return value


def _image_to_float(image: np.ndarray) -> np.ndarray:
    """Pixel array -> float64 RGB in [0, 1] with shape (H, W, 3)."""
    pixels = np.asarray(image)
    if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
        raise ValueError(f"Image must have shape (H, W, 3) or (H, W, 4), got {pixels.shape}")
    if pixels.shape[0] == 0 or pixels.shape[1] == 0:
        raise ValueError("Image must not be empty")

    if np.issubdtype(pixels.dtype, np.integer):
        scaled = pixels.astype(np.float64) / np.iinfo(pixels.dtype).max
    else:
        scaled = pixels.astype(np.float64)
    return scaled[..., :3]


def _sample_bilinear(pixels: np.ndarray, u: np.ndarray, v: float) -> np.ndarray:
    """Bilinear samples at normalized (u, v) using pixel-center coordinates.

    Coordinates past the outer pixel centers clamp to the edge pixel.

    Returns:
        Array with shape (len(u), 3)
    """
    height, width = pixels.shape[:2]
    cols = np.asarray(u, dtype=np.float64) * width - 0.5
    rows = np.full_like(cols, v * height - 0.5)
    coords = np.vstack([rows, cols])
    channels = [
        map_coordinates(pixels[..., c], coords, order=1, mode="nearest")
        for c in range(3)
    ]
    return np.clip(np.stack(channels, axis=-1), 0.0, 1.0)


def _read_bytes(filepath: PathLike) -> bytes:
    try:
        return Path(filepath).read_bytes()
    except OSError as e:
        raise ColormapIOError(f"Cannot read colormap file {filepath}: {e}") from e


def _write_bytes(filepath: PathLike, data: bytes) -> None:
    try:
        Path(filepath).write_bytes(data)
    except OSError as e:
        raise ColormapIOError(f"Cannot write colormap file {filepath}: {e}") from e
