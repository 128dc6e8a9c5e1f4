"""
checks.py

Acceptance checks applied to every tone case.

    dynamic range  tone bin power vs. loudest other bin, in dB
    phase          atan2 of the tone bin vs. the injected start phase
    magnitude      sqrt(tone power) / N vs. the injected amplitude
    round trip     inverse(forward(x)) / N vs. x, summed squared error
    layout         packed + reorder vs. directly ordered spectrum

Each check is independent and returns a CheckResult; callers run all of
them and OR the failures together, so one case reports every defect it
shows instead of stopping at the first.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .engine import Domain
from .spectrum import bin_value, find_carrier, power_to_db
from .thresholds import (
    DEG_ERR_LIMIT,
    EXPECTED_DYN_RANGE_DB,
    MAG_ERR_LIMIT,
    round_trip_limit,
)


@dataclass
class CheckResult:
    """Outcome of one acceptance check on one tone case.

    Attributes:
        name: Check name ("dynamic_range", "phase", ...).
        passed: False when the measurement violates the threshold.
        bin: Bin the measurement refers to.
        measured: Measured value (dB, radians, magnitude or squared error).
        expected: Expected value or None where only a bound applies.
        threshold: Limit the measurement was held against.
        message: Console diagnostic, empty when the check passed.
        skipped: True when the check does not apply to this bin.
    """

    name: str
    passed: bool
    bin: int
    measured: float
    expected: Optional[float]
    threshold: float
    message: str = ""
    skipped: bool = False

    @property
    def failed(self) -> bool:
        return not self.passed


def expected_magnitude(n: int, domain: Domain, k: int, amp: float) -> float:
    """
    Magnitude sqrt(power)/N the tone should show at bin k.

    A real tone splits its energy between the +k and -k images and only
    +k is stored, so interior real bins read amp/2.  DC and Nyquist have a
    single image and read amp, as does every complex bin.
    """
    if domain is Domain.COMPLEX or k == 0 or k == n // 2:
        return float(amp)
    return float(amp) / 2.0


def check_dynamic_range(powers: np.ndarray, k: int, n: int, domain: Domain,
                        limit_db: float = EXPECTED_DYN_RANGE_DB) -> CheckResult:
    """Tone bin must sit at least ``limit_db`` above every other bin."""
    pwr_car, pwr_other, k_other = find_carrier(powers, k)
    db_car = power_to_db(pwr_car)
    db_other = power_to_db(pwr_other)
    dyn_range = db_car - db_other
    passed = dyn_range >= limit_db

    message = ""
    if not passed:
        message = (
            f"  carrier power  at bin {k}: {pwr_car:g} == {db_car:f} dB\n"
            f"  carrier mag || at bin {k}: {math.sqrt(pwr_car):g}\n"
            f"  max other pwr  at bin {k_other}: {pwr_other:g} == {db_other:f} dB\n"
            f"  dynamic range: {dyn_range:f} dB (limit {limit_db:f} dB)"
        )
    return CheckResult(
        name="dynamic_range",
        passed=passed,
        bin=k_other,
        measured=dyn_range,
        expected=None,
        threshold=limit_db,
        message=message,
    )


def check_phase(y: np.ndarray, n: int, domain: Domain, k: int, phi0: float,
                amp: float, limit_deg: float = DEG_ERR_LIMIT) -> CheckResult:
    """Phase of the tone bin must match phi0; DC and Nyquist are skipped."""
    limit = limit_deg * math.pi / 180.0
    if k == 0 or k == n // 2:
        return CheckResult("phase", True, k, float("nan"), phi0, limit, skipped=True)

    v = bin_value(y, n, domain, k)
    phi = math.atan2(v.imag, v.real)
    passed = abs(phi - phi0) <= limit

    message = ""
    if not passed:
        message = (
            f"{domain.label} fft {n}  bin {k} amp {amp:f} : phase mismatch! "
            f"phase = {math.degrees(phi):f} deg   expected = {math.degrees(phi0):f} deg"
        )
    return CheckResult("phase", passed, k, phi, phi0, limit, message)


def check_magnitude(pwr_car: float, n: int, domain: Domain, k: int, amp: float,
                    limit: float = MAG_ERR_LIMIT) -> CheckResult:
    """Tone magnitude sqrt(pwr_car)/N must match the injected amplitude."""
    expected = expected_magnitude(n, domain, k, amp)
    mag = math.sqrt(pwr_car) / n
    passed = abs(mag - expected) <= limit

    message = ""
    if not passed:
        message = (
            f"{domain.label} fft {n}  bin {k} amp {amp:f} : "
            f"mag = {mag:g}   expected = {expected:g}"
        )
    return CheckResult("magnitude", passed, k, mag, expected, limit, message)


def check_round_trip(x: np.ndarray, z: np.ndarray, n: int, domain: Domain,
                     k: int) -> CheckResult:
    """
    Scale the unnormalized reconstruction z by 1/N (in place) and compare.

    Every stored float counts, so both real and imaginary parts contribute
    in the complex domain.
    """
    z /= n
    err_sum = float(np.sum((x.astype(np.float64) - z.astype(np.float64)) ** 2))
    limit = round_trip_limit(n)
    passed = err_sum <= limit

    message = ""
    if not passed:
        message = (
            f"{domain.label} fft {n}  bin {k} : inverse FFT doesn't match original signal! "
            f"errSum = {err_sum:g} ; mean err = {err_sum / n:g} (limit {limit:g})"
        )
    return CheckResult("round_trip", passed, k, err_sum, 0.0, limit, message)


def check_layout_consistency(direct: np.ndarray, via_packed: np.ndarray,
                             packed: np.ndarray, packed_again: np.ndarray,
                             n: int, domain: Domain, k: int) -> CheckResult:
    """
    Packed path and ordered path must agree exactly.

    ``direct`` is the spectrum from the ordered transform, ``via_packed`` the
    packed spectrum after reordering, ``packed_again`` the reordered
    spectrum pushed back to packed layout.
    """
    mismatch = int(np.count_nonzero(direct != via_packed))
    not_inverse = int(np.count_nonzero(packed != packed_again))
    passed = mismatch == 0 and not_inverse == 0

    message = ""
    if not passed:
        message = (
            f"{domain.label} fft {n}  bin {k} : packed layout mismatch! "
            f"{mismatch} floats differ from ordered transform, "
            f"{not_inverse} floats not restored by reorder round trip"
        )
    return CheckResult("layout", passed, k, float(mismatch + not_inverse), 0.0, 0.0, message)
