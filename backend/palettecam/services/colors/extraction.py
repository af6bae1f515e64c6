"""
Palette extraction service.

This module reduces the observed color set to a fixed-size palette with
k-means clustering and publishes the result without blocking the frame
loop: the clustering itself runs in a worker thread while the previous
palette stays in effect.
"""

import asyncio
from typing import Callable, Optional, Tuple

import numpy as np
from loguru import logger
from sklearn.cluster import KMeans

from palettecam.config import config
from palettecam.errors import EmptyColorSetError, ExtractionInFlightError
from palettecam.services.colors.collector import ObservedColorSet, decode_keys
from palettecam.services.colors.palette import PALETTE_SIZE, Palette, PaletteState
from palettecam.services.observability import performance_monitor
from palettecam.utils.metrics import get_metrics


def assign_to_centroids(samples: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """
    Index of the nearest centroid for each sample (Euclidean).

    Equidistant samples go to the lower-indexed centroid.
    """
    samples = np.asarray(samples, dtype=np.float64).reshape(-1, 3)
    centroids = np.asarray(centroids, dtype=np.float64).reshape(-1, 3)
    distances = np.linalg.norm(samples[:, None, :] - centroids[None, :, :], axis=-1)
    return np.argmin(distances, axis=1)


def cluster_centroids(samples: np.ndarray, k: int = PALETTE_SIZE,
                      max_iter: int = 300, tol: float = 1e-4, n_init: int = 4,
                      random_state: int = 42) -> Tuple[np.ndarray, np.ndarray]:
    """
    Cluster RGB samples (0-255) into at most k centroids.

    Args:
        samples: (N, 3) distinct RGB samples
        k: Number of clusters
        max_iter: Iteration cap per restart
        tol: Centroid movement tolerance declaring convergence
        n_init: Number of restarts; the lowest-inertia run wins
        random_state: Seed for deterministic initialization

    Returns:
        Tuple of (centroids (M, 3) with M <= k, per-centroid sample counts)
    """
    samples = np.asarray(samples, dtype=np.float64).reshape(-1, 3)
    if len(samples) == 0:
        raise EmptyColorSetError("No colors observed yet")

    # Degenerate case: one cluster per sample
    if len(samples) <= k:
        return samples.copy(), np.ones(len(samples), dtype=np.int64)

    kmeans = KMeans(
        n_clusters=k,
        init="k-means++",
        n_init=n_init,
        max_iter=max_iter,
        tol=tol,
        random_state=random_state,
        algorithm="lloyd",
    )
    kmeans.fit(samples)
    centroids = kmeans.cluster_centers_

    labels = assign_to_centroids(samples, centroids)
    counts = np.bincount(labels, minlength=len(centroids))
    logger.debug(f"k-means converged after {kmeans.n_iter_} iterations (inertia={kmeans.inertia_:.1f})")
    return centroids, counts


def extract_palette(keys: np.ndarray, k: int = PALETTE_SIZE, divisor: int = 3,
                    max_iter: int = 300, tol: float = 1e-4, n_init: int = 4,
                    random_state: int = 42, generation: int = 0) -> Palette:
    """
    Build a palette from a snapshot of quantized color keys.

    Centroids are normalized to 0-1; slots beyond the number of centroids
    stay zero.

    Raises:
        EmptyColorSetError: If the snapshot holds no keys
    """
    if k < 1 or k > PALETTE_SIZE:
        raise ValueError(f"k must be between 1 and {PALETTE_SIZE}, got {k}")

    keys = np.asarray(keys, dtype=np.uint32)
    if keys.size == 0:
        raise EmptyColorSetError("No colors observed yet")

    samples = decode_keys(keys, divisor)
    centroids, counts = cluster_centroids(
        samples, k=k, max_iter=max_iter, tol=tol, n_init=n_init, random_state=random_state
    )

    palette = Palette.from_rgb(np.clip(centroids / 255.0, 0.0, 1.0), generation=generation)

    logger.info(f"Clusters: {counts.tolist()}")
    logger.info("Centroids: " + ", ".join(
        f"({c[0]:.3f}, {c[1]:.3f}, {c[2]:.3f})" for c in palette.rgb[:len(centroids)]
    ))
    return palette


class PaletteExtractor:
    """
    On-demand palette extraction over the observed color set.

    One run at a time: a trigger while a run is active is rejected with
    ExtractionInFlightError and leaves all state untouched.
    """

    def __init__(self, color_set: ObservedColorSet, state: PaletteState,
                 publish: Callable[[Palette], None], k: int = PALETTE_SIZE,
                 divisor: Optional[int] = None):
        self.color_set = color_set
        self.state = state
        self.publish = publish
        self.k = k
        self.divisor = divisor or config.QUANT_DIVISOR
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def trigger(self) -> Palette:
        """
        Snapshot, cluster off the loop thread, then publish.

        Returns:
            The newly published palette

        Raises:
            ExtractionInFlightError: If a run is already active
            EmptyColorSetError: If nothing has been observed yet
        """
        metrics = get_metrics()
        if self._in_flight:
            metrics.increment("extraction_rejected_total")
            logger.warning("Palette extraction already running; trigger ignored")
            raise ExtractionInFlightError("Palette extraction already in progress")

        self._in_flight = True
        try:
            # Snapshot on the loop thread, before the collector runs again
            keys = self.color_set.snapshot()
            if keys.size == 0:
                raise EmptyColorSetError("No colors observed yet")

            generation = self.state.next_generation()
            logger.info(f"Starting palette extraction over {keys.size} colors (generation {generation})")

            palette = await asyncio.to_thread(self._run, keys, generation)

            self.publish(palette)
            metrics.set_gauge("palette_generation", palette.generation)
            return palette
        finally:
            self._in_flight = False

    def _run(self, keys: np.ndarray, generation: int) -> Palette:
        with performance_monitor("palette_extraction", sample_count=int(keys.size)):
            return extract_palette(
                keys,
                k=self.k,
                divisor=self.divisor,
                max_iter=config.KMEANS_MAX_ITER,
                tol=config.KMEANS_TOL,
                n_init=config.KMEANS_N_INIT,
                random_state=config.RNG_SEED,
                generation=generation,
            )
