# tests/test_histogram.py
"""
Tests for the pixel histogram builder.
"""

import os
import sys
import unittest
from unittest.mock import patch

import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from stack_viewer import histogram
from stack_viewer.histogram import Histogram, build_histogram, frame_mask, rebin_frames


class TestHistogram(unittest.TestCase):
    """Test cases for the Histogram value type."""

    def test_placeholder(self):
        """Test the two-point placeholder."""
        hist = Histogram.placeholder()

        np.testing.assert_array_equal(hist.values, [0, 1])
        np.testing.assert_array_equal(hist.pdf, [0, 1])
        np.testing.assert_array_equal(hist.cdf, [0, 1])
        self.assertTrue(hist.degenerate)
        self.assertEqual(hist.span, (0.0, 1.0))

    def test_length_mismatch_rejected(self):
        """Test that arrays of different lengths are refused."""
        with self.assertRaises(ValueError):
            Histogram(values=np.arange(3.0), pdf=np.ones(2) / 2, cdf=np.array([0.5, 1.0]))

    def test_too_short_rejected(self):
        """Test that a single-bin histogram is refused."""
        with self.assertRaises(ValueError):
            Histogram(values=np.array([1.0]), pdf=np.array([1.0]), cdf=np.array([1.0]))


class TestBuildHistogram(unittest.TestCase):
    """Test cases for build_histogram."""

    def setUp(self):
        """Set up test fixtures."""
        rng = np.random.default_rng(7)
        self.movie = rng.normal(100.0, 10.0, size=(16, 16, 12))

    def test_invariants(self):
        """Test the shape and normalisation of a regular histogram."""
        hist = build_histogram(self.movie)

        self.assertFalse(hist.degenerate)
        self.assertGreaterEqual(len(hist), 2)
        self.assertEqual(len(hist.values), len(hist.pdf))
        self.assertEqual(len(hist.pdf), len(hist.cdf))
        self.assertAlmostEqual(hist.pdf.sum(), 1.0)
        self.assertEqual(hist.cdf[-1], 1.0)
        self.assertTrue(np.all(np.diff(hist.cdf) >= 0))
        self.assertTrue(np.all(np.diff(hist.values) > 0))
        self.assertLessEqual(hist.values[0], self.movie.min() + 10)
        self.assertGreaterEqual(hist.values[-1], self.movie.max() - 10)

    def test_constant_movie(self):
        """Test that a constant movie gives the placeholder."""
        hist = build_histogram(np.full((4, 5, 6), 3.5))
        self.assertTrue(hist.degenerate)
        np.testing.assert_array_equal(hist.values, [0, 1])

    def test_empty_and_nonfinite_movies(self):
        """Test that movies without usable samples give the placeholder."""
        self.assertTrue(build_histogram(np.zeros((0, 4, 3))).degenerate)
        self.assertTrue(build_histogram(np.full((3, 3, 2), np.nan)).degenerate)

    def test_nonfinite_samples_ignored(self):
        """Test that NaN and inf samples do not break the histogram."""
        movie = self.movie.copy()
        movie[0, 0, :] = np.nan
        movie[1, 1, :] = np.inf
        hist = build_histogram(movie)

        self.assertTrue(np.all(np.isfinite(hist.values)))
        self.assertAlmostEqual(hist.pdf.sum(), 1.0)

    def test_max_numbins(self):
        """Test the cap on the number of bins."""
        hist = build_histogram(self.movie, max_numbins=4)
        self.assertLessEqual(len(hist), 4)

    def test_long_movie_is_binned(self):
        """Test that only long movies are averaged before binning."""
        with patch('stack_viewer.histogram.rebin_frames', wraps=rebin_frames) as rebin:
            build_histogram(np.random.rand(3, 3, 50), min_numbins=2, contrast_binning=10)
            rebin.assert_called_once()
            self.assertEqual(rebin.call_args[0][1], 10)

        with patch('stack_viewer.histogram.rebin_frames', wraps=rebin_frames) as rebin:
            build_histogram(np.random.rand(3, 3, 20), min_numbins=2, contrast_binning=10)
            rebin.assert_not_called()

    def test_mask_restricts_samples(self):
        """Test that a pixel mask limits the histogram to the masked region."""
        movie = np.full((6, 6, 4), 1000.0)
        movie[:3, :, :] = np.linspace(0, 1, 3 * 6 * 4).reshape(3, 6, 4)
        mask = np.zeros((6, 6), dtype=bool)
        mask[:3, :] = True

        hist = build_histogram(movie, mask=mask)

        self.assertLess(hist.values[-1], 2.0)

    def test_mask_of_wrong_size_is_ignored(self):
        """Test that a mismatched mask falls back to the full frame."""
        with self.assertLogs('stack_viewer.histogram', level='WARNING'):
            hist = build_histogram(self.movie, mask=np.ones((3, 3), dtype=bool))
        reference = build_histogram(self.movie)
        np.testing.assert_array_equal(hist.values, reference.values)


class TestHelpers(unittest.TestCase):
    """Test cases for the frame helpers."""

    def test_rebin_frames(self):
        """Test averaging of frame groups, including a partial last group."""
        movie = np.arange(7, dtype=float).reshape(1, 1, 7)
        binned = rebin_frames(movie, 3)

        self.assertEqual(binned.shape, (1, 1, 3))
        np.testing.assert_allclose(binned[0, 0], [1.0, 4.0, 6.0])

    def test_rebin_frames_ignores_nan(self):
        """Test that NaN samples are left out of the group means."""
        movie = np.array([1.0, np.nan, 3.0, np.nan, np.nan]).reshape(1, 1, 5)
        binned = rebin_frames(movie, 3)

        self.assertEqual(binned[0, 0, 0], 2.0)
        self.assertTrue(np.isnan(binned[0, 0, 1]))

    def test_frame_mask(self):
        """Test reshaping and validation of pixel masks."""
        mask = np.ones(12, dtype=bool)
        self.assertEqual(frame_mask(mask, (3, 4)).shape, (3, 4))
        self.assertIsNone(frame_mask(mask, (3, 3)))
        self.assertIsNone(frame_mask(np.ones(12), (3, 4)))

    def test_defaults(self):
        """Test the default binning constants."""
        self.assertEqual(histogram.MIN_NUMBINS, 20)
        self.assertEqual(histogram.CONTRAST_BINNING, 30)


if __name__ == '__main__':
    unittest.main()
