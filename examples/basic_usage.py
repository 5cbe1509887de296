#!/usr/bin/env python3
"""
Example showing movie viewers, automatic contrast and frame synchronisation.

Two movies of a spreading Gaussian blob are shown side by side; moving
through one movie moves the other along with it.
"""

import numpy as np
import matplotlib.pyplot as plt

from stack_viewer import MovieViewer, get_movie_info, group


def normpdf_movie(rows=96, cols=128, frames=60, noise=0.02, seed=0):
    """Gaussian blob widening over time, with some background noise."""
    rng = np.random.default_rng(seed)
    y, x = np.mgrid[:rows, :cols]
    movie = np.empty((rows, cols, frames))
    for f in range(frames):
        sigma = 4.0 + 0.5 * f
        blob = np.exp(-((x - cols / 2) ** 2 + (y - rows / 2) ** 2) / (2 * sigma ** 2))
        movie[:, :, f] = blob + rng.normal(0, noise, size=(rows, cols))
    return movie


def rgb_movie(rows=96, cols=128, frames=30):
    """Pre-coloured movie: a hue ramp sliding across the frame."""
    x = np.linspace(0, 1, cols)
    movie = np.zeros((rows, cols, 3, frames))
    for f in range(frames):
        phase = (x + f / frames) % 1.0
        movie[:, :, 0, f] = phase
        movie[:, :, 1, f] = 1.0 - phase
        movie[:, :, 2, f] = 0.5
    return movie


def demo_contrast(viewer):
    """Step through the contrast presets of a viewer."""
    print("=== Contrast presets ===")
    state = viewer.state
    for k in range(1, state.contrast.num_presets + 1):
        state.set_contrast_index(k)
        lo, hi = state.pixel_range
        print(f"  preset {k:2d}: [{lo:.4g}, {hi:.4g}]")
    state.set_contrast_index(1)


def main():
    """Create two synchronised viewers."""
    print("Stack Viewer - Basic Usage")
    print("=" * 50)

    narrow = normpdf_movie(noise=0.01)
    wide = normpdf_movie(noise=0.05, seed=1)
    for name, movie in (("narrow", narrow), ("wide", wide)):
        info = get_movie_info(movie)
        print(f"{name}: shape {info['shape']}, range [{info['min_value']:.3g}, {info['max_value']:.3g}]")

    viewer_a = MovieViewer(narrow, title="Low noise")
    viewer_b = MovieViewer(wide, title="High noise", colors="viridis")
    viewer_b.state.set_title([f"t = {f / 30:.2f} s" for f in range(wide.shape[-1])])

    demo_contrast(viewer_a)

    group([viewer_a, viewer_b])
    viewer_a.state.set_frame(20)
    print(f"\nAfter moving viewer A: A at {viewer_a.state.frame_info()}, B at {viewer_b.state.frame_info()}")

    viewer_c = MovieViewer(rgb_movie(), title="Pre-coloured")

    print("\nControls:")
    print("  - Arrow keys step one frame, page up/down step one second")
    print("  - Home/End jump to the first/last frame")
    print("  - Space or Enter starts and stops playback")
    print("  - The contrast button cycles through the presets")

    return {"a": viewer_a, "b": viewer_b, "colored": viewer_c}


if __name__ == "__main__":
    viewers = main()

    for viewer in viewers.values():
        viewer.show(block=False)
    plt.show()
