# src/stack_viewer/contrast.py
"""
Display range from a pixel histogram.

A preset index ``k`` selects a saturation fraction ``s_k``: the probability
mass clipped from each tail of the pixel distribution. The range edges are
found by inverting the cumulative distribution at ``s_k`` and ``1 - s_k``.
Finite edges of the pixel domain (e.g. a sensor that cannot read below 0)
always override the computed edges.

An explicit range can be set instead. The preset index is then left as it
was, so the two may disagree until the next preset selection.
"""

from __future__ import annotations
import logging
import math
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from .histogram import Histogram

logger = logging.getLogger(__name__)

Range = Tuple[float, float]
FULL_DOMAIN: Range = (-math.inf, math.inf)


def saturation_presets(
    count: int = 10, scale: float = 6e-9, step: int = 10, power: int = 4
) -> np.ndarray:
    """Saturation fractions ``scale * (1 + step*(k-1))**power`` for k = 1..count."""
    k = np.arange(1, count + 1, dtype=float)
    return scale * (1 + step * (k - 1)) ** power


CONTRAST_RANGE = saturation_presets()


def infer_domain(movie: np.ndarray) -> Range:
    """``[0, inf]`` if the smallest finite sample is exactly 0, else unbounded."""
    arr = np.asarray(movie)
    if arr.size == 0:
        return FULL_DOMAIN
    if np.issubdtype(arr.dtype, np.floating):
        finite = arr[np.isfinite(arr)]
        if finite.size == 0:
            return FULL_DOMAIN
        lowest = finite.min()
    else:
        lowest = arr.min()
    return (0.0, math.inf) if lowest == 0 else FULL_DOMAIN


def as_range(value: Iterable[float]) -> Range:
    lo, hi = (float(v) for v in value)
    return lo, hi


def invert_cdf(cdf: np.ndarray, targets: Sequence[float]) -> np.ndarray:
    """
    Fractional (0-based) positions at which a strictly increasing CDF reaches
    each target, interpolating linearly and extrapolating past either end.
    """
    cdf = np.asarray(cdf, dtype=float)
    targets = np.asarray(targets, dtype=float)
    n = cdf.size
    if n < 2:
        return np.full(targets.shape, np.nan)
    positions = np.interp(targets, cdf, np.arange(n, dtype=float))
    below = targets < cdf[0]
    positions[below] = (targets[below] - cdf[0]) / (cdf[1] - cdf[0])
    above = targets > cdf[-1]
    positions[above] = (n - 1) + (targets[above] - cdf[-1]) / (cdf[-1] - cdf[-2])
    return positions


class ContrastEngine:
    """
    Holds the contrast state of one viewer: preset index and display range.

    Parameters
    ----------
    presets : sequence of float, optional
        Saturation fractions in (0, 0.5), one per preset (default: CONTRAST_RANGE)
    histogram : Histogram, optional
        Pixel histogram (default: the placeholder)
    domain : (float, float), optional
        Hard bounds on the range; infinite sides are ignored
    """

    def __init__(
        self,
        presets: Optional[Sequence[float]] = None,
        histogram: Optional[Histogram] = None,
        domain: Range = FULL_DOMAIN,
    ):
        presets = np.asarray(CONTRAST_RANGE if presets is None else presets, dtype=float)
        if presets.ndim != 1 or presets.size == 0:
            raise ValueError("presets must be a non-empty 1D sequence of fractions.")
        if np.any((presets <= 0) | (presets >= 0.5)):
            raise ValueError("Saturation fractions must lie in (0, 0.5).")
        self.presets = presets
        self.histogram = histogram if histogram is not None else Histogram.placeholder()
        self.domain = as_range(domain)
        self.contrast_index = 1
        self.pixel_range: Range = (0.0, 1.0)

    @property
    def num_presets(self) -> int:
        return int(self.presets.size)

    def reset(self, histogram: Histogram, domain: Range = FULL_DOMAIN):
        """Swap in the histogram and domain of a newly loaded movie."""
        self.histogram = histogram
        self.domain = as_range(domain)

    def clamp_index(self, index: int) -> int:
        return max(1, min(int(index), self.num_presets))

    def compute_range(self, index: int) -> Range:
        """Range for preset ``index`` (clamped); does not change any state."""
        hist = self.histogram
        lo, hi = hist.span
        if not hist.degenerate:
            saturation = self.presets[self.clamp_index(index) - 1]
            # skip flat stretches so the inverse is well defined
            sel = np.concatenate(([0], 1 + np.flatnonzero(np.diff(hist.cdf) != 0)))
            positions = invert_cdf(hist.cdf[sel], [saturation, 1 - saturation])
            edges = [lo, hi]
            for i, pos in enumerate(positions):
                if 0 < pos < sel.size - 1:
                    below = hist.values[sel[int(math.floor(pos))]]
                    above = hist.values[sel[int(math.ceil(pos))]]
                    edges[i] = below + (above - below) * (pos - math.floor(pos))
            lo, hi = edges

        domain_lo, domain_hi = self.domain
        if math.isfinite(domain_lo):
            lo = domain_lo
        if math.isfinite(domain_hi):
            hi = domain_hi
        return float(lo), float(hi)

    def set_by_index(self, index: int) -> bool:
        """Select a preset and recompute the range. Returns False if rejected."""
        index = self.clamp_index(index)
        lo, hi = self.compute_range(index)
        if not hi > lo:
            logger.debug("Rejecting preset %d: range [%g, %g] is empty", index, lo, hi)
            return False
        self.contrast_index = index
        self.pixel_range = (lo, hi)
        return True

    def set_by_range(self, lo: float, hi: float) -> bool:
        """Set an explicit range; anything but finite ``hi > lo`` is ignored."""
        try:
            lo, hi = float(lo), float(hi)
        except (TypeError, ValueError):
            logger.debug("Rejecting non-numeric range (%r, %r)", lo, hi)
            return False
        if not (math.isfinite(lo) and math.isfinite(hi) and hi > lo):
            logger.debug("Rejecting range [%g, %g]", lo, hi)
            return False
        self.pixel_range = (lo, hi)
        return True

    def cycle(self) -> bool:
        """Advance to the next preset, wrapping after the last one."""
        return self.set_by_index(1 + self.contrast_index % self.num_presets)
