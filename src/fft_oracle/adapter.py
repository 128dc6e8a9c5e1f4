"""
adapter.py

Thin call-through from the oracle to the FFT engine.

The engine can produce a forward spectrum two ways: directly in ordered
layout, or in its packed layout followed by an explicit reorder.  Both paths
must give the same ordered spectrum, so the adapter exposes them through a
single forward() with a Layout selector and always hands back an ordered
Spectrum.  inverse() always consumes ordered input.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from .engine import DEFAULT_ENGINE, Direction, Domain


class Layout(Enum):
    ORDERED = "ordered"
    PACKED = "packed"


@dataclass
class Spectrum:
    """Spectrum buffer tagged with the layout its floats are stored in."""

    data: np.ndarray
    n: int
    domain: Domain
    layout: Layout

    def to_ordered(self, plan, engine=DEFAULT_ENGINE,
                   out: Optional[np.ndarray] = None) -> "Spectrum":
        """Return this spectrum in ordered layout (self when already ordered)."""
        if self.layout is Layout.ORDERED:
            return self
        if out is None:
            out = engine.aligned_malloc(self.data.size)
        engine.zreorder(plan, self.data, out, Direction.FORWARD)
        return Spectrum(out, self.n, self.domain, Layout.ORDERED)

    def to_packed(self, plan, engine=DEFAULT_ENGINE,
                  out: Optional[np.ndarray] = None) -> "Spectrum":
        """Return this spectrum in packed layout (self when already packed)."""
        if self.layout is Layout.PACKED:
            return self
        if out is None:
            out = engine.aligned_malloc(self.data.size)
        engine.zreorder(plan, self.data, out, Direction.BACKWARD)
        return Spectrum(out, self.n, self.domain, Layout.PACKED)


class TransformAdapter:
    """
    Forward/inverse transforms through one plan.

    The plan is an opaque engine handle: it is created by the caller, shared
    read-only by every call and destroyed by the caller once the
    configuration is finished.  Length and domain are passed alongside it.
    """

    def __init__(self, plan, n: int, domain: Domain, engine=DEFAULT_ENGINE):
        self.plan = plan
        self.n = n
        self.domain = domain
        self.engine = engine

    def forward_ordered(self, x: np.ndarray, out: np.ndarray, work: np.ndarray) -> Spectrum:
        self.engine.transform_ordered(self.plan, x, out, work, Direction.FORWARD)
        return Spectrum(out, self.n, self.domain, Layout.ORDERED)

    def forward_packed(self, x: np.ndarray, out: np.ndarray, work: np.ndarray) -> Spectrum:
        self.engine.transform(self.plan, x, out, work, Direction.FORWARD)
        return Spectrum(out, self.n, self.domain, Layout.PACKED)

    def forward(
        self,
        x: np.ndarray,
        out: np.ndarray,
        work: np.ndarray,
        layout: Layout = Layout.ORDERED,
        scratch: Optional[np.ndarray] = None,
    ) -> Spectrum:
        """
        Forward transform of x, returned in ordered layout.

        With Layout.PACKED the engine writes its packed spectrum into
        ``scratch`` first and the result is reordered into ``out``.
        """
        if layout is Layout.ORDERED:
            return self.forward_ordered(x, out, work)
        if layout is not Layout.PACKED:
            raise ValueError(f"Unknown spectrum layout: {layout!r}")
        if scratch is None:
            scratch = self.engine.aligned_malloc(out.size)
        packed = self.forward_packed(x, scratch, work)
        return packed.to_ordered(self.plan, self.engine, out)

    def reorder(self, spectrum: Spectrum, out: np.ndarray, direction: Direction) -> Spectrum:
        """Move a spectrum between layouts (FORWARD: packed -> ordered)."""
        if direction is Direction.FORWARD:
            if spectrum.layout is not Layout.PACKED:
                raise ValueError("FORWARD reorder expects a packed spectrum")
            return spectrum.to_ordered(self.plan, self.engine, out)
        if spectrum.layout is not Layout.ORDERED:
            raise ValueError("BACKWARD reorder expects an ordered spectrum")
        return spectrum.to_packed(self.plan, self.engine, out)

    def inverse(
        self,
        spectrum: Spectrum,
        out: np.ndarray,
        work: np.ndarray,
        scratch: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """
        Inverse transform of an ordered spectrum.

        A packed spectrum is reordered into ``scratch`` first.  The result is
        not normalized: it is N times the original signal.
        """
        ordered = spectrum.to_ordered(self.plan, self.engine, scratch)
        self.engine.transform_ordered(self.plan, ordered.data, out, work, Direction.BACKWARD)
        return out
