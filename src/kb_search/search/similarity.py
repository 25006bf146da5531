"""
Vector similarity helpers.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from ..errors import DimensionMismatchError


# Returned when either vector has zero magnitude. Numerically equal to an
# orthogonal match; use ``is_zero_vector`` to tell the two apart.
UNDEFINED_SIMILARITY = 0.0


def is_zero_vector(vector: Sequence[float]) -> bool:
    return all(v == 0 for v in vector)


def is_valid_embedding(vector: Sequence[float] | None, dim: int | None = None) -> bool:
    """Return True for a non-empty vector of finite numbers, of length *dim* if given."""
    if vector is None or len(vector) == 0:
        return False
    if dim is not None and len(vector) != dim:
        return False
    return all(
        isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)
        for v in vector
    )


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between *a* and *b*, in [-1, 1].

    Raises ``DimensionMismatchError`` for vectors of different lengths.
    Returns ``UNDEFINED_SIMILARITY`` when either vector has zero magnitude.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    dot = math.fsum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(math.fsum(x * x for x in a))
    norm_b = math.sqrt(math.fsum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return UNDEFINED_SIMILARITY

    return max(-1.0, min(1.0, dot / (norm_a * norm_b)))
