"""
engine.py

Single precision FFT engine checked by the oracle.

The oracle treats the engine as an external collaborator and never looks
inside the plan it returns.  An engine provides:

    new_setup(n, domain)                           -> plan (opaque handle)
    destroy_setup(plan)                            release a plan
    aligned_malloc(n_floats)                       float32 work buffer
    transform_ordered(plan, inp, out, work, dir)   spectrum in bin order
    transform(plan, inp, out, work, dir)           spectrum in packed order
    zreorder(plan, inp, out, dir)                  packed <-> ordered

``ScipyEngine`` provides these on top of ``scipy.fft`` (pocketfft), which
keeps float32/complex64 data in single precision.  Any object exposing the
same methods can be handed to the adapter instead.

Spectrum layouts
----------------
Complex domain, N points: N cells of interleaved (re, im) floats.

Real domain, N points: N/2 cells.  Cell 0 holds the two purely real bins,
DC at float offset 0 and Nyquist at float offset 1.  Cell j (0 < j < N/2)
holds bin j as (re, im).

Ordered layout stores cell j at float offset 2*j.  The packed (canonical)
layout stores the cells as a SIMD_SZ lane transpose:

    packed cell  SIMD_SZ*r + lane  =  ordered cell  lane*(cells/SIMD_SZ) + r

which is a pure permutation of (re, im) pairs, exact in both directions.

Scaling
-------
Forward and backward transforms are both unnormalized, so
backward(forward(x)) == N * x.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

import numpy as np
import scipy.fft


# Lanes of the packed layout (4 floats, one SSE register in the C engine).
SIMD_SZ = 4

# Byte alignment of buffers returned by aligned_malloc.
ALIGNMENT = 64


class PlanError(ValueError):
    """Raised when a plan cannot be created or is used after destroy()."""


class Domain(Enum):
    REAL = "real"
    COMPLEX = "complex"

    @property
    def label(self) -> str:
        """Short tag used in console messages."""
        return "cplx" if self is Domain.COMPLEX else "real"


class Direction(Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


def is_power_of_two(v: int) -> bool:
    """True for 1, 2, 4, 8, ...; False for zero and everything else."""
    v = int(v)
    return v > 0 and not (v & (v - 1))


def min_size(domain: Domain) -> int:
    """Smallest transform length the packed layout supports for ``domain``."""
    # Real transforms pack N/2 cells, so they need twice the length.
    return 8 * SIMD_SZ if domain is Domain.REAL else 4 * SIMD_SZ


def float_count(n: int, domain: Domain) -> int:
    """Floats in a signal or spectrum buffer of an N point transform."""
    return 2 * n if domain is Domain.COMPLEX else n


def aligned_malloc(n_floats: int) -> np.ndarray:
    """
    Allocate a zero-filled float32 buffer starting on an ALIGNMENT boundary.

    The buffer is carved out of a slightly larger byte array; numpy keeps
    the base alive for as long as the returned view is referenced.
    """
    n_floats = int(n_floats)
    if n_floats <= 0:
        raise ValueError("n_floats must be > 0")
    itemsize = np.dtype(np.float32).itemsize
    raw = np.zeros(n_floats * itemsize + ALIGNMENT, dtype=np.uint8)
    offset = (-raw.ctypes.data) % ALIGNMENT
    return raw[offset:offset + n_floats * itemsize].view(np.float32)


class TransformPlan:
    """
    Plan bound to one transform length and domain.

    Owns the permutation tables of the packed layout.  A plan is immutable
    while alive and may be shared by any number of transforms; destroy()
    releases the tables and any later use raises PlanError.
    """

    def __init__(self, n: int, domain: Domain):
        if not isinstance(domain, Domain):
            raise PlanError(f"Unknown transform domain: {domain!r}")
        n = int(n)
        if not is_power_of_two(n):
            raise PlanError(f"Transform length {n} is not a power of two")
        if n < min_size(domain):
            raise PlanError(
                f"Transform length {n} below minimum {min_size(domain)} "
                f"for {domain.value} transforms"
            )

        self.n = n
        self.domain = domain
        self.n_floats = float_count(n, domain)
        self.n_cells = self.n_floats // 2

        lanes = self.n_cells // SIMD_SZ
        # packed cell p holds ordered cell _ordered_of_packed[p]
        self._ordered_of_packed = np.arange(self.n_cells).reshape(SIMD_SZ, lanes).T.reshape(-1)
        self._packed_of_ordered = np.argsort(self._ordered_of_packed)
        self._alive = True

    @property
    def alive(self) -> bool:
        return self._alive

    def destroy(self) -> None:
        self._ordered_of_packed = None
        self._packed_of_ordered = None
        self._alive = False

    def require_alive(self) -> None:
        if not self._alive:
            raise PlanError(f"{self!r} used after destroy()")

    def __repr__(self) -> str:
        return f"TransformPlan(n={self.n}, domain={self.domain.value})"


def _check_buffer(plan: TransformPlan, buf: np.ndarray, name: str) -> None:
    if not isinstance(buf, np.ndarray) or buf.dtype != np.float32 or buf.ndim != 1:
        raise ValueError(f"{name} must be a 1-D float32 array")
    if buf.size != plan.n_floats:
        raise ValueError(f"{name} holds {buf.size} floats, plan needs {plan.n_floats}")


def _check_direction(direction: Direction) -> None:
    if not isinstance(direction, Direction):
        raise ValueError(f"Unknown transform direction: {direction!r}")


class ScipyEngine:
    """Single precision engine backed by scipy.fft."""

    def new_setup(self, n: int, domain: Domain) -> TransformPlan:
        return TransformPlan(n, domain)

    def destroy_setup(self, plan: TransformPlan) -> None:
        plan.destroy()

    def simd_size(self) -> int:
        return SIMD_SZ

    def aligned_malloc(self, n_floats: int) -> np.ndarray:
        return aligned_malloc(n_floats)

    # ------------------------------------------------------------------
    # Transforms
    # ------------------------------------------------------------------

    def transform_ordered(
        self,
        plan: TransformPlan,
        inp: np.ndarray,
        out: np.ndarray,
        work: Optional[np.ndarray] = None,
        direction: Direction = Direction.FORWARD,
    ) -> None:
        """Transform with the spectrum side in ordered layout."""
        plan.require_alive()
        _check_direction(direction)
        _check_buffer(plan, inp, "input")
        _check_buffer(plan, out, "output")
        n = plan.n

        if plan.domain is Domain.COMPLEX:
            cells = inp.reshape(-1, 2)
            z = np.empty(n, dtype=np.complex64)
            z.real = cells[:, 0]
            z.imag = cells[:, 1]
            if direction is Direction.FORWARD:
                spec = scipy.fft.fft(z)
            else:
                spec = scipy.fft.ifft(z, norm="forward")
            out_cells = out.reshape(-1, 2)
            out_cells[:, 0] = spec.real
            out_cells[:, 1] = spec.imag
            return

        if direction is Direction.FORWARD:
            spec = scipy.fft.rfft(inp)
            out[0] = spec[0].real
            out[1] = spec[-1].real
            out[2::2] = spec[1:-1].real
            out[3::2] = spec[1:-1].imag
        else:
            spec = np.zeros(n // 2 + 1, dtype=np.complex64)
            spec[0] = inp[0]
            spec[-1] = inp[1]
            spec.real[1:-1] = inp[2::2]
            spec.imag[1:-1] = inp[3::2]
            out[:] = scipy.fft.irfft(spec, n=n, norm="forward")

    def transform(
        self,
        plan: TransformPlan,
        inp: np.ndarray,
        out: np.ndarray,
        work: Optional[np.ndarray] = None,
        direction: Direction = Direction.FORWARD,
    ) -> None:
        """Transform with the spectrum side in packed (canonical) layout."""
        plan.require_alive()
        _check_direction(direction)
        if work is None:
            work = aligned_malloc(plan.n_floats)
        _check_buffer(plan, work, "work")
        if np.shares_memory(work, inp) or np.shares_memory(work, out):
            raise ValueError("work buffer must not overlap input or output")

        if direction is Direction.FORWARD:
            self.transform_ordered(plan, inp, work, None, Direction.FORWARD)
            self.zreorder(plan, work, out, Direction.BACKWARD)
        else:
            self.zreorder(plan, inp, work, Direction.FORWARD)
            self.transform_ordered(plan, work, out, None, Direction.BACKWARD)

    def zreorder(
        self,
        plan: TransformPlan,
        inp: np.ndarray,
        out: np.ndarray,
        direction: Direction,
    ) -> None:
        """
        Reorder a spectrum between the two layouts.

        FORWARD turns a packed spectrum into ordered form, BACKWARD turns an
        ordered spectrum into packed form.  Only whole (re, im) cells move,
        so the round trip is bit exact.  inp and out may be the same
        array.
        """
        plan.require_alive()
        _check_direction(direction)
        _check_buffer(plan, inp, "input")
        _check_buffer(plan, out, "output")

        if direction is Direction.FORWARD:
            index = plan._packed_of_ordered
        else:
            index = plan._ordered_of_packed
        # Fancy indexing copies before the assignment, so aliasing is safe.
        out.reshape(-1, 2)[:] = inp.reshape(-1, 2)[index]


DEFAULT_ENGINE = ScipyEngine()
