"""
contribround/protocol/isqrt.py

Integer square root used to weight votes by the voter's reputation.

Digit-by-digit (base 4) method: no floats, no math library, constant space.
"""


def isqrt(v: int) -> int:
    """
    Return floor(sqrt(v)).

    Satisfies isqrt(v)**2 <= v < (isqrt(v) + 1)**2 for every v >= 0.

    Examples:
        isqrt(0)   -> 0
        isqrt(2)   -> 1
        isqrt(99)  -> 9
        isqrt(100) -> 10
        isqrt(500) -> 22

    Args:
        v: Non-negative integer

    Returns:
        Integer square root of v

    Raises:
        ValueError: if v is negative
    """
    if v < 0:
        raise ValueError("isqrt input should be non-negative")

    # Highest power of four not above v
    bit = 1 << ((v.bit_length() - 1) & ~1) if v else 0
    remainder = v
    root = 0

    while bit:
        trial = root + bit
        root >>= 1
        if remainder >= trial:
            remainder -= trial
            root += bit
        bit >>= 2

    return root
