"""CIE L*a*b* color space conversions.

Reference: http://www.easyrgb.com/en/math.php (sRGB -> XYZ -> CIE-L*ab)

All functions accept floats, numpy arrays or torch tensors.
RGB channels are sRGB-encoded in [0, 1]; XYZ is normalized by the D65
reference white so that white maps to (1, 1, 1).
"""

import numpy as np

from . import _backend as B
from ._backend import Array

# D65 reference white
_WHITE = (0.95047, 1.00000, 1.08883)

# Linear sRGB -> XYZ
_RGB_TO_XYZ = (
    (0.4124, 0.3576, 0.1805),
    (0.2126, 0.7152, 0.0722),
    (0.0193, 0.1192, 0.9505),
)

# XYZ -> Linear sRGB, exact inverse of the matrix above so in-gamut colors
# survive a round trip to float precision
_XYZ_TO_RGB = tuple(
    tuple(float(v) for v in row)
    for row in np.linalg.inv(np.array(_RGB_TO_XYZ, dtype=np.float64))
)

# CIE f(t) breakpoint and linear segment
_EPSILON = 0.008856
_KAPPA = 7.787
_OFFSET = 16.0 / 116.0


# === sRGB transfer function ===

def srgb_to_linear(x: Array) -> Array:
    """sRGB -> Linear RGB gamma decoding (per channel)."""
    threshold = 0.04045
    low = x / 12.92
    high = B.pow((B.maximum(x, threshold) + 0.055) / 1.055, 2.4)
    return B.where(x <= threshold, low, high)


def linear_to_srgb(x: Array) -> Array:
    """Linear RGB -> sRGB gamma encoding (per channel)."""
    threshold = 0.0031308
    low = x * 12.92
    high = 1.055 * B.pow(B.maximum(x, 1e-10), 1/2.4) - 0.055
    return B.where(x <= threshold, low, high)


# === Linear RGB <-> XYZ ===

def linear_rgb_to_xyz(r: Array, g: Array, b: Array) -> tuple[Array, Array, Array]:
    """Linear RGB -> white-normalized XYZ."""
    x = (_RGB_TO_XYZ[0][0]*r + _RGB_TO_XYZ[0][1]*g + _RGB_TO_XYZ[0][2]*b) / _WHITE[0]
    y = (_RGB_TO_XYZ[1][0]*r + _RGB_TO_XYZ[1][1]*g + _RGB_TO_XYZ[1][2]*b) / _WHITE[1]
    z = (_RGB_TO_XYZ[2][0]*r + _RGB_TO_XYZ[2][1]*g + _RGB_TO_XYZ[2][2]*b) / _WHITE[2]
    return x, y, z


def xyz_to_linear_rgb(x: Array, y: Array, z: Array) -> tuple[Array, Array, Array]:
    """White-normalized XYZ -> Linear RGB (unclamped)."""
    x = x * _WHITE[0]
    y = y * _WHITE[1]
    z = z * _WHITE[2]
    r = _XYZ_TO_RGB[0][0]*x + _XYZ_TO_RGB[0][1]*y + _XYZ_TO_RGB[0][2]*z
    g = _XYZ_TO_RGB[1][0]*x + _XYZ_TO_RGB[1][1]*y + _XYZ_TO_RGB[1][2]*z
    b = _XYZ_TO_RGB[2][0]*x + _XYZ_TO_RGB[2][1]*y + _XYZ_TO_RGB[2][2]*z
    return r, g, b


# === XYZ <-> Lab ===

def _lab_f(t: Array) -> Array:
    return B.where(t > _EPSILON, B.cbrt(t), _KAPPA * t + _OFFSET)


def _lab_f_inv(f: Array) -> Array:
    cubed = f ** 3
    return B.where(cubed > _EPSILON, cubed, (f - _OFFSET) / _KAPPA)


def xyz_to_lab(x: Array, y: Array, z: Array) -> tuple[Array, Array, Array]:
    """White-normalized XYZ -> CIE Lab. L in [0, 100], a/b roughly [-128, 128]."""
    fx, fy, fz = _lab_f(x), _lab_f(y), _lab_f(z)
    L = 116.0 * fy - 16.0
    a = 500.0 * (fx - fy)
    b = 200.0 * (fy - fz)
    return L, a, b


def lab_to_xyz(L: Array, a: Array, b: Array) -> tuple[Array, Array, Array]:
    """CIE Lab -> white-normalized XYZ."""
    fy = (L + 16.0) / 116.0
    fx = a / 500.0 + fy
    fz = fy - b / 200.0
    return _lab_f_inv(fx), _lab_f_inv(fy), _lab_f_inv(fz)


# === Convenience Composites ===

def rgb_to_lab(r: Array, g: Array, b: Array) -> tuple[Array, Array, Array]:
    """sRGB -> CIE Lab.

    Args:
        r, g, b: sRGB channels in [0, 1]

    Returns:
        (L, a, b) tuple
    """
    x, y, z = linear_rgb_to_xyz(srgb_to_linear(r), srgb_to_linear(g), srgb_to_linear(b))
    return xyz_to_lab(x, y, z)


def lab_to_rgb(L: Array, a: Array, b: Array) -> tuple[Array, Array, Array]:
    """CIE Lab -> sRGB, clamped to [0, 1].

    Interpolating between saturated colors regularly lands outside the sRGB
    gamut, so every channel is clipped rather than returned out of range.
    """
    x, y, z = lab_to_xyz(L, a, b)
    r_lin, g_lin, b_lin = xyz_to_linear_rgb(x, y, z)
    return (
        B.clip(linear_to_srgb(r_lin), 0.0, 1.0),
        B.clip(linear_to_srgb(g_lin), 0.0, 1.0),
        B.clip(linear_to_srgb(b_lin), 0.0, 1.0),
    )


def rgb_array_to_lab(rgb: Array) -> Array:
    """sRGB array with shape (..., 3) -> Lab array with shape (..., 3)."""
    L, a, b = rgb_to_lab(rgb[..., 0], rgb[..., 1], rgb[..., 2])
    return B.stack([L, a, b], axis=-1)


def lab_array_to_rgb(lab: Array) -> Array:
    """Lab array with shape (..., 3) -> clamped sRGB array with shape (..., 3)."""
    r, g, b = lab_to_rgb(lab[..., 0], lab[..., 1], lab[..., 2])
    return B.stack([r, g, b], axis=-1)
