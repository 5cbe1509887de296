# src/stack_viewer/histogram.py
"""
Pixel-value histogram of a movie tensor.

The histogram is the input of the contrast engine: bin centres, the
probability mass per bin and its running sum. It is built once per loaded
movie and never updated in place.

Long movies are first averaged in groups of ``CONTRAST_BINNING`` frames so
that the cost of building the histogram stays bounded. A movie without any
usable spread (constant, empty, all non-finite) yields the flat two-point
placeholder ``values=[0, 1], pdf=[0, 1]``.
"""

from __future__ import annotations
import logging
import warnings
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

MIN_NUMBINS = 20
CONTRAST_BINNING = 30
MAX_NUMBINS = 4096


@dataclass(frozen=True, eq=False)
class Histogram:
    """Bin centres (ascending), probability per bin and cumulative distribution."""
    values: np.ndarray
    pdf: np.ndarray
    cdf: np.ndarray
    degenerate: bool = False

    def __post_init__(self):
        if not (len(self.values) == len(self.pdf) == len(self.cdf)):
            raise ValueError(
                f"Histogram arrays differ in length: values {len(self.values)}, "
                f"pdf {len(self.pdf)}, cdf {len(self.cdf)}."
            )
        if len(self.values) < 2:
            raise ValueError("Histogram needs at least 2 bins.")

    @classmethod
    def placeholder(cls) -> "Histogram":
        return cls(
            values=np.array([0.0, 1.0]),
            pdf=np.array([0.0, 1.0]),
            cdf=np.array([0.0, 1.0]),
            degenerate=True,
        )

    @property
    def span(self) -> Tuple[float, float]:
        return float(self.values[0]), float(self.values[-1])

    def __len__(self) -> int:
        return len(self.values)


def rebin_frames(movie: np.ndarray, factor: int) -> np.ndarray:
    """Average consecutive groups of ``factor`` frames (last axis), ignoring NaNs.

    A trailing partial group is averaged over the frames it has.
    """
    arr = np.asarray(movie, dtype=float)
    factor = int(factor)
    if factor <= 1 or arr.shape[-1] <= 1:
        return arr
    nframes = arr.shape[-1]
    ngroups = -(-nframes // factor)
    pad = ngroups * factor - nframes
    if pad:
        fill = np.full(arr.shape[:-1] + (pad,), np.nan)
        arr = np.concatenate([arr, fill], axis=-1)
    grouped = arr.reshape(arr.shape[:-1] + (ngroups, factor))
    with warnings.catch_warnings():
        # groups made only of NaNs stay NaN
        warnings.simplefilter("ignore", RuntimeWarning)
        return np.nanmean(grouped, axis=-1)


def frame_mask(mask: np.ndarray, frame_shape: Tuple[int, ...]) -> Optional[np.ndarray]:
    """Reshape a boolean pixel mask to one frame, or None if the sizes disagree."""
    mask = np.asarray(mask)
    if mask.dtype != bool or mask.size != int(np.prod(frame_shape)):
        return None
    return mask.reshape(frame_shape)


def build_histogram(
    movie: np.ndarray,
    mask: Optional[np.ndarray] = None,
    min_numbins: int = MIN_NUMBINS,
    contrast_binning: int = CONTRAST_BINNING,
    max_numbins: int = MAX_NUMBINS,
) -> Histogram:
    """
    Build the probability-normalised histogram of a grayscale movie.

    Parameters
    ----------
    movie : numpy.ndarray
        Movie tensor, frames along the last axis
    mask : numpy.ndarray, optional
        Boolean mask selecting pixels of a frame; applied to every frame
    min_numbins, contrast_binning : int, optional
        Movies with more than ``min_numbins * contrast_binning`` frames are
        averaged in groups of ``contrast_binning`` frames first
    max_numbins : int, optional
        Upper bound on the automatically chosen number of bins

    Returns
    -------
    Histogram
        The placeholder histogram if the samples have no spread
    """
    arr = np.asarray(movie)
    if arr.size == 0:
        return Histogram.placeholder()

    if arr.shape[-1] > min_numbins * contrast_binning:
        sampled = rebin_frames(arr, contrast_binning)
        logger.debug(
            "Binned %d frames into %d for the histogram", arr.shape[-1], sampled.shape[-1]
        )
    else:
        sampled = arr

    if mask is not None:
        sel = frame_mask(mask, sampled.shape[:2])
        if sel is None:
            logger.warning(
                "Ignoring pixel mask of shape %s for frames of shape %s",
                np.shape(mask), sampled.shape[:2],
            )
        else:
            sampled = sampled[sel]

    samples = np.asarray(sampled, dtype=float).ravel()
    samples = samples[np.isfinite(samples)]
    if samples.size == 0 or samples.min() == samples.max():
        return Histogram.placeholder()

    edges = np.histogram_bin_edges(samples, bins="auto")
    if len(edges) - 1 > max_numbins:
        edges = np.histogram_bin_edges(samples, bins=max_numbins)
    counts, edges = np.histogram(samples, bins=edges)
    if counts.size < 2:
        return Histogram.placeholder()

    pdf = counts / counts.sum()
    cdf = np.minimum(np.cumsum(pdf), 1.0)
    cdf[-1] = 1.0
    values = (edges[:-1] + edges[1:]) / 2
    return Histogram(values=values, pdf=pdf, cdf=cdf)
