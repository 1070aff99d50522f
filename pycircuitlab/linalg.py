"""Dense linear solve: Gaussian elimination with partial pivoting.

The MNA systems built here are small (tens of unknowns) and may be singular
when the user wires up something degenerate, e.g. two sources in parallel.
``jnp.linalg.solve`` would hand back inf/nan in that case, so elimination is
done explicitly and a vanishing pivot is reported as "no solution".
"""

from __future__ import annotations

import logging

import jax.numpy as jnp
from jax import Array

from .config import DEFAULT_PIVOT_TOLERANCE

logger = logging.getLogger(__name__)


def solve_linear_system(
    A,
    b,
    *,
    pivot_tolerance: float = DEFAULT_PIVOT_TOLERANCE,
) -> Array | None:
    """
    Solve A x = b.

    Args:
        A: (n, n) matrix (array-like)
        b: (n,) right-hand side (array-like)
        pivot_tolerance: smallest acceptable pivot magnitude

    Returns:
        x as a float64 array, or None when A is singular (a pivot column has
        no entry of magnitude >= pivot_tolerance).
    """
    A = jnp.asarray(A, dtype=jnp.float64)
    b = jnp.asarray(b, dtype=jnp.float64)
    n = A.shape[0]

    # Augmented matrix [A | b]
    M = jnp.concatenate([A, b[:, None]], axis=1)

    # Forward elimination
    for k in range(n):
        # Partial pivoting: largest magnitude in column k at or below row k
        column = jnp.abs(M[k:, k])
        offset = int(jnp.argmax(column))
        pivot = float(column[offset])
        if not pivot >= pivot_tolerance:
            logger.debug("Singular matrix: pivot %.3e in column %d", pivot, k)
            return None

        p = k + offset
        if p != k:
            M = M.at[jnp.array([k, p])].set(M[jnp.array([p, k])])

        factors = M[k + 1:, k] / M[k, k]
        M = M.at[k + 1:].add(-factors[:, None] * M[k])

    # Back substitution
    x = jnp.zeros(n, dtype=jnp.float64)
    for i in range(n - 1, -1, -1):
        x = x.at[i].set((M[i, n] - M[i, i + 1:n] @ x[i + 1:]) / M[i, i])

    return x
