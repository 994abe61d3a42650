"""CIE Lab color space conversions.

This module provides:
- sRGB <-> linear RGB transfer functions
- linear RGB <-> XYZ <-> CIE Lab conversions
- Gamut clamping on the way back to sRGB
- Backend-agnostic: works with floats, numpy arrays or torch tensors

Example:
    import numpy as np
    from labmap.colorspace import rgb_array_to_lab, lab_array_to_rgb

    lab = rgb_array_to_lab(np.array([[1.0, 0.5, 0.0]]))
    lab[..., 0] *= 0.8  # darken
    rgb = lab_array_to_rgb(lab)
"""

from .cielab import (
    srgb_to_linear,
    linear_to_srgb,
    linear_rgb_to_xyz,
    xyz_to_linear_rgb,
    xyz_to_lab,
    lab_to_xyz,
    rgb_to_lab,
    lab_to_rgb,
    rgb_array_to_lab,
    lab_array_to_rgb,
)

__all__ = [
    # sRGB transfer
    'srgb_to_linear',
    'linear_to_srgb',
    # XYZ
    'linear_rgb_to_xyz',
    'xyz_to_linear_rgb',
    # Lab
    'xyz_to_lab',
    'lab_to_xyz',
    'rgb_to_lab',
    'lab_to_rgb',
    'rgb_array_to_lab',
    'lab_array_to_rgb',
]
