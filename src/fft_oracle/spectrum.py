"""
spectrum.py

Per bin power extraction from an ordered spectrum buffer.

Complex domain: bin j is the interleaved pair at float offsets (2j, 2j+1).

Real domain: bins 0..N/2.  DC and Nyquist carry no imaginary part and share
the first cell, DC at offset 0 and Nyquist at offset 1.  Every other bin j
uses the pair at (2j, 2j+1).  Nyquist is the last bin logically but is read
from offset 1, never from offset N.
"""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np

from .engine import Domain
from .thresholds import POWER_FLOOR


def bin_count(n: int, domain: Domain) -> int:
    """Number of distinct bins: N for complex, N/2 + 1 for real input."""
    return n if domain is Domain.COMPLEX else n // 2 + 1


def bin_value(y: np.ndarray, n: int, domain: Domain, j: int) -> complex:
    """Complex value of bin j in the ordered spectrum y."""
    if not 0 <= j < bin_count(n, domain):
        raise ValueError(f"Bin {j} outside 0..{bin_count(n, domain) - 1}")
    if domain is Domain.REAL:
        if j == 0:
            return complex(float(y[0]), 0.0)
        if j == n // 2:
            return complex(float(y[1]), 0.0)
    return complex(float(y[2 * j]), float(y[2 * j + 1]))


def bin_power(y: np.ndarray, n: int, domain: Domain, j: int) -> float:
    """Power re^2 + im^2 of bin j in the ordered spectrum y, summed in float32."""
    v = bin_value(y, n, domain, j)
    re, im = np.float32(v.real), np.float32(v.imag)
    return float(re * re + im * im)


def power_spectrum(y: np.ndarray, n: int, domain: Domain) -> np.ndarray:
    """
    Power of every bin, indexed by bin number.

    Squares and sums stay in float32, the precision of the spectrum itself,
    and only the result is widened to float64 for the dB arithmetic.
    """
    y = np.asarray(y, dtype=np.float32)
    if domain is Domain.COMPLEX:
        powers = y[0::2] * y[0::2] + y[1::2] * y[1::2]
        return powers.astype(np.float64)

    powers = np.empty(n // 2 + 1, dtype=np.float32)
    powers[0] = y[0] * y[0]
    powers[n // 2] = y[1] * y[1]
    powers[1:n // 2] = y[2::2] * y[2::2] + y[3::2] * y[3::2]
    return powers.astype(np.float64)


def power_to_db(pwr: float) -> float:
    """10*log10(pwr), with powers below POWER_FLOOR clamped to the floor."""
    return 10.0 * math.log10(max(float(pwr), POWER_FLOOR))


def find_carrier(powers: np.ndarray, k: int) -> Tuple[float, float, int]:
    """
    Split the powers into the tone bin and the loudest other bin.

    Returns
    -------
    pwr_car : float
        Power at bin k.
    pwr_other : float
        Largest power at any bin other than k.
    k_other : int
        Index of that bin (the lowest one on ties).
    """
    powers = np.asarray(powers, dtype=np.float64)
    if len(powers) < 2:
        raise ValueError("Need at least two bins to measure dynamic range")
    pwr_car = float(powers[k])
    others = powers.copy()
    others[k] = -np.inf
    k_other = int(np.argmax(others))
    return pwr_car, float(others[k_other]), k_other
