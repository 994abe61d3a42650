"""Backend dispatch for numpy/torch compatibility.

Provides the elementwise math used by the Lab conversions so they work with
Python floats, numpy arrays and torch tensors alike.
Torch is imported lazily on first use to avoid loading it when not needed.
"""

import numpy as np
from typing import Any

Array = Any  # float, numpy.ndarray or torch.Tensor

# Lazy torch reference - only imported when needed
_torch = None


def _get_torch():
    """Get torch module, importing it on first use."""
    global _torch
    if _torch is None:
        import torch
        _torch = torch
    return _torch


def is_torch(x: Array) -> bool:
    """Check if x is a torch tensor."""
    return type(x).__module__.startswith('torch')


# === Dispatched operations ===

def cbrt(x: Array) -> Array:
    """Cube root (sign-preserving)."""
    if is_torch(x):
        torch = _get_torch()
        return torch.sign(x) * torch.abs(x).pow(1/3)
    return np.cbrt(x)


def pow(x: Array, exp: float) -> Array:
    if is_torch(x):
        return _get_torch().pow(x, exp)
    return np.power(x, exp)


def clip(x: Array, lo: float, hi: float) -> Array:
    if is_torch(x):
        return _get_torch().clamp(x, lo, hi)
    return np.clip(x, lo, hi)


def where(cond: Array, true_val: Array, false_val: Array) -> Array:
    if is_torch(cond):
        return _get_torch().where(cond, true_val, false_val)
    return np.where(cond, true_val, false_val)


def maximum(x: Array, floor: float) -> Array:
    """Elementwise max against a scalar floor."""
    if is_torch(x):
        return _get_torch().clamp(x, min=floor)
    return np.maximum(x, floor)


def stack(arrays: list[Array], axis: int = -1) -> Array:
    """Stack arrays along a new axis."""
    if is_torch(arrays[0]):
        return _get_torch().stack(arrays, dim=axis)
    return np.stack(arrays, axis=axis)
