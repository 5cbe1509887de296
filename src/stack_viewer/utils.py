# src/stack_viewer/utils.py
"""
Utility functions for the stack viewer.

Formatting of the info strings shown by the hosts, range arithmetic and a
summary of a movie tensor.
"""

from typing import Any, Dict, Tuple

import numpy as np


def range_intersection(range1: Tuple[float, float], range2: Tuple[float, float]) -> Tuple[float, float]:
    """Overlap of two ``(lo, hi)`` ranges; empty if the result has ``lo > hi``."""
    return max(range1[0], range2[0]), min(range1[1], range2[1])


def format_frame_info(current_frame: int, total_frames: int) -> str:
    return f"{current_frame}/{total_frames}"


def format_pixel_info(row: int, col: int, frame: int, value: Any) -> str:
    """
    Format a pixel readout as ``(row,col,frame)=value``.

    Parameters
    ----------
    row, col, frame : int
        1-based pixel coordinates and frame index
    value : float or array-like
        Sample value; pre-coloured movies give one value per channel
    """
    value = np.asarray(value)
    if value.ndim == 0:
        text = f"{float(value):.4g}"
    else:
        text = "[" + " ".join(f"{float(v):.4g}" for v in value.ravel()) + "]"
    return f"({row},{col},{frame})={text}"


def get_movie_info(movie: np.ndarray) -> Dict[str, Any]:
    """
    Get information about a movie tensor.

    Parameters
    ----------
    movie : numpy.ndarray
        Movie with frames along the last axis

    Returns
    -------
    dict
        Dictionary containing:
        - shape: tensor shape
        - frames: number of frames
        - colored: whether frames are pre-coloured (4D)
        - dtype: data type of the samples
        - min_value, max_value, mean_value: statistics over finite samples
          (NaN if there are none)
    """
    arr = np.asarray(movie)
    finite = arr[np.isfinite(arr)] if np.issubdtype(arr.dtype, np.number) else arr.ravel()
    has_values = finite.size > 0
    return {
        "shape": arr.shape,
        "frames": arr.shape[-1] if arr.ndim else 0,
        "colored": arr.ndim == 4,
        "dtype": str(arr.dtype),
        "min_value": float(np.min(finite)) if has_values else float("nan"),
        "max_value": float(np.max(finite)) if has_values else float("nan"),
        "mean_value": float(np.mean(finite)) if has_values else float("nan"),
    }
