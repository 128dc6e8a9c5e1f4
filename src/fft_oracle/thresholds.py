"""
thresholds.py

Acceptance limits and sweep constants shared by every oracle module.

This module is the single source of truth for the numeric limits the
acceptance checks apply and for the default extent of the size sweep.
The limits are tuned for single precision arithmetic (24 bit mantissa).
An engine working in another precision needs its own limits derived,
not these values copied.
"""

from __future__ import annotations

# ============================================================================
# Spectral purity
# ============================================================================
# Single precision float has 24 bits of mantissa, 24 bits * 6 dB = 144 dB.
# A few dB are left as tolerance.
EXPECTED_DYN_RANGE_DB = 140.0

# Powers below this floor are clamped before conversion to dB so that an
# exactly zero bin does not produce log(0).
POWER_FLOOR = 1e-30

# ============================================================================
# Phase and magnitude
# ============================================================================
# Maximum allowed phase error of the tone bin (degrees).
DEG_ERR_LIMIT = 1e-4

# Maximum allowed magnitude error, absolute, for amplitudes of 1.0 or 1.1.
MAG_ERR_LIMIT = 1e-6

# ============================================================================
# Round trip
# ============================================================================
# Allowed summed squared reconstruction error per transform point.  The
# bound for a transform of length N is N * ROUND_TRIP_ERR_PER_SAMPLE.
ROUND_TRIP_ERR_PER_SAMPLE = 1e-7

# ============================================================================
# Test signal
# ============================================================================
# Tone amplitudes: every third tone uses unity gain, the rest use 1.1 so
# that non-unity scaling is exercised as well.
UNITY_AMPLITUDE = 1.0
NON_UNITY_AMPLITUDE = 1.1

# Starting phase step (radians).  Four steps give 0, 22.5, 45 and 67.5 deg,
# all below 90 deg so the measured atan2 never has to be unwrapped.
START_PHASE_STEP = 0.125

# ============================================================================
# Sweep extent
# ============================================================================
MIN_SIZE = 32
MAX_SIZE = 65536

# Tone bins advance by N / TONE_STEPS, giving coarse spectral coverage.
TONE_STEPS = 16


def round_trip_limit(n: int) -> float:
    """Summed squared error allowed for a round trip of length ``n``."""
    return n * ROUND_TRIP_ERR_PER_SAMPLE
