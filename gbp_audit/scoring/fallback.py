"""Seeded fallback scores for locations whose authoritative data is absent.

The hash mirrors the dashboard's client-side generator so that a location
shows the same placeholder score wherever it is rendered: a 31-multiplier
rolling hash over UTF-16 code units, wrapped to a signed 32-bit integer at
every step.
"""

import math

_INT32_MAX = 2**31 - 1
_UINT32 = 2**32


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties toward positive infinity."""
    return int(math.floor(value + 0.5))


def _wrap_int32(value: int) -> int:
    value %= _UINT32
    return value - _UINT32 if value > _INT32_MAX else value


def seed_hash(seed: str) -> int:
    """Fold ``seed`` into a signed 32-bit integer."""
    encoded = seed.encode("utf-16-le", errors="surrogatepass")
    result = 0
    for index in range(0, len(encoded), 2):
        code_unit = encoded[index] | (encoded[index + 1] << 8)
        result = _wrap_int32(result * 31 + code_unit)
    return result


def fallback_score(seed: str, minimum: int, maximum: int) -> int:
    """Return a stable pseudo-random integer in ``[minimum, maximum]`` for ``seed``."""
    if minimum > maximum:
        raise ValueError(f"minimum ({minimum}) must not exceed maximum ({maximum})")
    normalized = abs(seed_hash(seed)) / _INT32_MAX
    value = round_half_up(minimum + normalized * (maximum - minimum))
    return max(minimum, min(maximum, value))
