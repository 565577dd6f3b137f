"""Global configuration for shamir-resharing.

Every operation takes the modulus and security parameter explicitly;
the values here are only the defaults used when a caller omits them.
"""

import os


def _int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw.strip(), 0)  # accepts "123" and "0x7b"


# ---------- Finite-field prime ----------
# 2^255 - 19, the Curve25519 field prime.  All arithmetic is mod PRIME
# unless a scheme supplies its own modulus.
PRIME = _int_from_env("SHAMIR_PRIME", 2**255 - 19)

# ---------- Randomness ----------
SECURITY_BITS = _int_from_env("SHAMIR_SECURITY_BITS", 128)

# Extra bits drawn above bitlength(p) before reducing mod p, so the
# reduced value is statistically close to uniform.
REDUCTION_MARGIN_BITS = 64
