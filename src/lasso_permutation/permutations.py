"""Seed-derived random streams for the permutation loop.

Reproducibility regardless of scheduling
----------------------------------------
A single shared generator consumed by every iteration would make the
i-th shuffle depend on how many draws earlier iterations happened to
make, and, once iterations run concurrently, on the order in which
worker threads reach the generator.  Instead, the root seed is split
with :class:`numpy.random.SeedSequence`:

    SeedSequence(random_state).spawn(B + 1)
        child 0      → observed fit (CV fold assignment only)
        child i + 1  → permutation i (shuffle, then CV folds)

``SeedSequence.spawn`` produces statistically independent streams
whose state is a pure function of ``(random_state, index)``.  Each
permutation therefore draws the same shuffle and the same folds no
matter which worker runs it, or when.

When a permutation fit fails and is re-drawn, the retry continues on
the *same* child stream, so retries are reproducible too.
"""

from __future__ import annotations

import math

import numpy as np


def spawn_generators(
    random_state: int | np.random.SeedSequence | None,
    n_permutations: int,
) -> tuple[np.random.Generator, list[np.random.Generator]]:
    """Split *random_state* into an observed stream and one per permutation.

    Args:
        random_state: Root seed.  ``None`` draws fresh OS entropy (the
            run is then not reproducible).
        n_permutations: Number of per-permutation streams (``B``).

    Returns:
        ``(observed_rng, permutation_rngs)`` where
        ``len(permutation_rngs) == n_permutations``.
    """
    if isinstance(random_state, np.random.SeedSequence):
        root = random_state
    else:
        root = np.random.SeedSequence(random_state)
    children = root.spawn(n_permutations + 1)
    observed = np.random.default_rng(children[0])
    return observed, [np.random.default_rng(c) for c in children[1:]]


def draw_permutation(rng: np.random.Generator, n_samples: int) -> np.ndarray:
    """Draw one uniform permutation of ``range(n_samples)``."""
    return rng.permutation(n_samples)


def permute_response(rng: np.random.Generator, y: np.ndarray) -> np.ndarray:
    """Return a shuffled copy of *y*; *y* itself is never modified."""
    return y[draw_permutation(rng, y.shape[0])]


def count_distinct_labelings(y: np.ndarray) -> int:
    """Number of distinct arrangements of a binary response.

    Shuffling a response with ``k`` ones among ``n`` entries can only
    produce ``C(n, k)`` distinct vectors.  When ``B`` approaches this
    number, many permutations are exact repeats.
    """
    y = np.asarray(y)
    return math.comb(int(y.size), int(np.count_nonzero(y)))


__all__ = [
    "count_distinct_labelings",
    "draw_permutation",
    "permute_response",
    "spawn_generators",
]
