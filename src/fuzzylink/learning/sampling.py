"""Uncertainty kernel and weighted sampling."""

from __future__ import annotations

import math

import numpy as np

from fuzzylink.model.classifiers import logit

DEFAULT_KERNEL_SD = 0.2


def uncertainty_weights(probabilities: np.ndarray, kernel_sd: float = DEFAULT_KERNEL_SD) -> np.ndarray:
    """Gaussian density (mean 0) evaluated at the logit of each probability.

    Weight peaks at probability 0.5 and underflows to exactly zero for
    pairs the model is confident about.

    Parameters
    ----------
    probabilities : np.ndarray
        Current match probabilities.
    kernel_sd : float, optional
        Standard deviation of the kernel on the logit scale.

    Returns
    -------
    np.ndarray
        Non-negative sampling weights, same shape as ``probabilities``.
    """
    if kernel_sd <= 0:
        raise ValueError(f"kernel_sd must be positive, got {kernel_sd}")
    z = logit(probabilities) / kernel_sd
    return np.exp(-0.5 * z * z) / (kernel_sd * math.sqrt(2.0 * math.pi))


def weighted_draw(rng: np.random.Generator, weights: np.ndarray, size: int) -> np.ndarray:
    """Draw row positions without replacement, proportionally to weight.

    Only rows with positive weight can be drawn. ``size`` is capped at the
    number of such rows.

    Returns
    -------
    np.ndarray
        Sorted row positions.
    """
    weights = np.asarray(weights, dtype=np.float64)
    total = weights[weights > 0].sum()
    if total <= 0:
        return np.empty(0, dtype=np.intp)
    scaled = np.where(weights > 0, weights / total, 0.0)
    candidates = np.flatnonzero(scaled > 0)
    size = min(size, candidates.size)
    if size <= 0:
        return np.empty(0, dtype=np.intp)
    p = scaled[candidates] / scaled[candidates].sum()
    chosen = rng.choice(candidates, size=size, replace=False, p=p)
    return np.sort(chosen)
