"""
tones.py

Single tone test signals.

Every tone is a pure sinusoid placed exactly on bin k of an N point
transform.  Amplitude and starting phase are derived from the tone's
iteration index m, so a sweep cycles through amplitudes {1.0, 1.1} and
starting phases {0, 22.5, 45, 67.5} deg without any randomness.

The phase is accumulated sample by sample and wrapped back into [-pi, pi)
after every increment.  Letting it grow unbounded over tens of thousands of
samples costs enough precision in cos()/sin() to show up in a 140 dB
dynamic range measurement.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .engine import Domain
from .thresholds import NON_UNITY_AMPLITUDE, START_PHASE_STEP, UNITY_AMPLITUDE


@dataclass
class Tone:
    """Synthesized tone and the parameters it was built from.

    Attributes:
        n: Transform length.
        domain: REAL or COMPLEX.
        k: Bin the tone sits on.
        m: Iteration index the amplitude and phase were taken from.
        amp: Amplitude (float32, as stored in the samples).
        phi0: Starting phase (radians).
        freq: Signed normalized frequency (cycles/sample).
        dphi: Per sample phase increment (radians, in [0, 2*pi)).
        samples: float32 buffer, N reals or 2N interleaved (re, im).
    """

    n: int
    domain: Domain
    k: int
    m: int
    amp: np.float32
    phi0: float
    freq: float
    dphi: float
    samples: np.ndarray


def tone_amplitude(m: int) -> np.float32:
    """Unity gain on every third tone, 1.1 otherwise."""
    return np.float32(UNITY_AMPLITUDE if m % 3 == 0 else NON_UNITY_AMPLITUDE)


def tone_start_phase(m: int) -> float:
    """Starting phase (m mod 4) * 22.5 deg, in radians."""
    return (m % 4) * START_PHASE_STEP * math.pi


def tone_frequency(n: int, k: int) -> float:
    """Signed normalized frequency of bin k; bins at or above N/2 are negative."""
    return k / n if k < n // 2 else (k - n) / n


def phase_increment(freq: float) -> float:
    """Per sample phase step for ``freq``, folded into [0, 2*pi)."""
    dphi = 2.0 * math.pi * freq
    if dphi < 0.0:
        dphi += 2.0 * math.pi
    return dphi


def phase_track(n: int, phi0: float, dphi: float) -> np.ndarray:
    """
    Running phase of n samples starting at phi0.

    Each step adds dphi and subtracts 2*pi once the phase reaches pi, so
    every value stays in [-pi, pi).
    """
    phases = np.empty(n, dtype=np.float64)
    phi = phi0
    for j in range(n):
        phases[j] = phi
        phi += dphi
        if phi >= math.pi:
            phi -= 2.0 * math.pi
    return phases


def synthesize_tone(
    n: int,
    domain: Domain,
    k: int,
    m: int,
    out: Optional[np.ndarray] = None,
) -> Tone:
    """
    Build the test tone for bin k, iteration m.

    Parameters
    ----------
    n : int
        Transform length.
    domain : Domain
        COMPLEX stores (amp*cos, amp*sin) interleaved, REAL stores amp*cos.
    k : int
        Tone bin, 0 <= k < n.
    m : int
        Iteration index selecting amplitude and starting phase.
    out : ndarray, optional
        float32 buffer to write into (n or 2n floats).  A new buffer is
        allocated when omitted.

    Returns
    -------
    Tone
        The samples together with amp, phi0, freq and dphi.
    """
    if not 0 <= k < n:
        raise ValueError(f"Tone bin {k} outside 0..{n - 1}")

    n_floats = 2 * n if domain is Domain.COMPLEX else n
    if out is None:
        out = np.zeros(n_floats, dtype=np.float32)
    elif out.dtype != np.float32 or out.size != n_floats:
        raise ValueError(f"out must be a float32 buffer of {n_floats} values")

    amp = tone_amplitude(m)
    phi0 = tone_start_phase(m)
    freq = tone_frequency(n, k)
    dphi = phase_increment(freq)

    phases = phase_track(n, phi0, dphi)
    # cos/sin in double, rounded to float, then scaled in float
    if domain is Domain.COMPLEX:
        out[0::2] = amp * np.cos(phases).astype(np.float32)
        out[1::2] = amp * np.sin(phases).astype(np.float32)
    else:
        out[:] = amp * np.cos(phases).astype(np.float32)

    return Tone(
        n=n,
        domain=domain,
        k=k,
        m=m,
        amp=amp,
        phi0=phi0,
        freq=freq,
        dphi=dphi,
        samples=out,
    )
