"""
sweep.py

Sweep driver: sizes x domains x layouts x tone bins.

For every power of two size the four configurations

    complex / ordered, real / ordered, complex / packed, real / packed

are run.  Each configuration creates one plan and one set of buffers,
reuses them for every tone bin and releases them afterwards, also when a
case fails.  Every tone case goes through all acceptance checks.

A case whose dynamic range check fails is run a second time with a per bin
power dump.  The input is deterministic, so the replay reproduces the same
numbers; it exists only to put the full spectrum on the console before the
failure is recorded.

Results are plain values folded upward by the caller:
case -> configuration -> size -> sweep.  Nothing is counted in shared state.
"""

from __future__ import annotations

import os
import warnings
from contextlib import contextmanager
from dataclasses import dataclass, field, fields
from typing import Iterator, List, Optional, Tuple

import numpy as np

from .adapter import Layout, Spectrum, TransformAdapter
from .checks import (
    CheckResult,
    check_dynamic_range,
    check_layout_consistency,
    check_magnitude,
    check_phase,
    check_round_trip,
)
from .engine import DEFAULT_ENGINE, Domain, PlanError, float_count, is_power_of_two
from .spectrum import bin_count, power_spectrum, power_to_db
from .thresholds import MAX_SIZE, MIN_SIZE, TONE_STEPS
from .tones import synthesize_tone


# Configuration order within one size.
CONFIGURATIONS = [
    (Domain.COMPLEX, Layout.ORDERED),
    (Domain.REAL, Layout.ORDERED),
    (Domain.COMPLEX, Layout.PACKED),
    (Domain.REAL, Layout.PACKED),
]


# ===========================================================================
# Configuration and result types
# ===========================================================================


@dataclass
class SweepConfig:
    """Options of one oracle run.

    Attributes:
        min_size: Smallest transform length (power of two).
        max_size: Largest transform length (power of two).
        print_spectrum: Dump every bin's power for every case, not only
            on dynamic range failures.
        plot_dir: Directory for spectrum plots of replayed cases; no plots
            when None.
        engine: FFT engine under test.
    """

    min_size: int = MIN_SIZE
    max_size: int = MAX_SIZE
    print_spectrum: bool = False
    plot_dir: Optional[str] = None
    engine: object = DEFAULT_ENGINE


@dataclass(frozen=True)
class ToneCase:
    """One inner iteration: size, domain, layout, tone bin and its index."""

    n: int
    domain: Domain
    layout: Layout
    k: int
    m: int

    @property
    def label(self) -> str:
        return f"{self.domain.label} fft {self.n}"


@dataclass
class CaseResult:
    case: ToneCase
    amp: float
    phi0: float
    checks: List[CheckResult]
    replayed: bool = False

    @property
    def failed(self) -> bool:
        return any(c.failed for c in self.checks)

    def check(self, name: str) -> CheckResult:
        for c in self.checks:
            if c.name == name:
                return c
        raise KeyError(name)

    @property
    def failures(self) -> List[CheckResult]:
        return [c for c in self.checks if c.failed]


@dataclass
class ConfigResult:
    n: int
    domain: Domain
    layout: Layout
    cases: List[CaseResult] = field(default_factory=list)
    setup_error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.setup_error is not None or any(c.failed for c in self.cases)


@dataclass
class SizeResult:
    n: int
    configs: List[ConfigResult] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return any(c.failed for c in self.configs)


@dataclass
class SweepResult:
    sizes: List[SizeResult] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return any(s.failed for s in self.sizes)

    @property
    def exit_status(self) -> int:
        return 1 if self.failed else 0

    def cases(self) -> Iterator[CaseResult]:
        for size in self.sizes:
            for config in size.configs:
                yield from config.cases

    def failure_counts(self) -> dict:
        """Number of failing cases per check name."""
        counts: dict = {}
        for case in self.cases():
            for c in case.failures:
                counts[c.name] = counts.get(c.name, 0) + 1
        return counts


# ===========================================================================
# Resources
# ===========================================================================


@dataclass
class Buffers:
    """Sample buffers of one configuration.

    x: original signal, y: ordered forward spectrum, z: packed spectrum and
    later the reconstruction, w: engine work buffer.  ref and ref_packed
    hold the other forward path for the layout check, packed_again its
    reorder back to packed form.
    """

    x: np.ndarray
    y: np.ndarray
    z: np.ndarray
    w: np.ndarray
    ref: np.ndarray
    ref_packed: np.ndarray
    packed_again: np.ndarray

    @classmethod
    def allocate(cls, engine, n_floats: int) -> "Buffers":
        return cls(*(engine.aligned_malloc(n_floats) for _ in fields(cls)))

    def release(self) -> None:
        for f in fields(self):
            setattr(self, f.name, None)


@contextmanager
def allocated_configuration(plan, n: int, domain: Domain, engine=DEFAULT_ENGINE
                            ) -> Iterator[Tuple[TransformAdapter, Buffers]]:
    """
    Buffers and adapter for an N point ``domain`` plan.

    On exit the buffers are released and the plan goes back to the engine
    through destroy_setup(), also when the body raised.
    """
    buffers = Buffers.allocate(engine, float_count(n, domain))
    try:
        yield TransformAdapter(plan, n, domain, engine), buffers
    finally:
        buffers.release()
        engine.destroy_setup(plan)


# ===========================================================================
# Sweep axes
# ===========================================================================


def sweep_sizes(min_size: int = MIN_SIZE, max_size: int = MAX_SIZE) -> List[int]:
    """Powers of two from min_size to max_size inclusive."""
    for name, value in (("min_size", min_size), ("max_size", max_size)):
        if not is_power_of_two(value):
            raise ValueError(f"{name}={value} is not a power of two")
    if min_size > max_size:
        raise ValueError(f"min_size={min_size} exceeds max_size={max_size}")
    sizes = []
    n = min_size
    while n <= max_size:
        sizes.append(n)
        n *= 2
    return sizes


def tone_bins(n: int, domain: Domain) -> List[int]:
    """Tone bins 0, N/16, 2N/16, ... below N (complex) or up to N/2 (real)."""
    step = max(1, n // TONE_STEPS)
    return list(range(0, bin_count(n, domain), step))


# ===========================================================================
# One tone case
# ===========================================================================


def _print_powers(case: ToneCase, powers: np.ndarray) -> None:
    for j, pwr in enumerate(powers):
        print(f"{case.label}:  pwr[j = {j}] = {pwr:g} == {power_to_db(pwr):f} dB")


def evaluate_case(
    adapter: TransformAdapter,
    buffers: Buffers,
    case: ToneCase,
    verbose: bool = False,
    print_spectrum: bool = False,
) -> Tuple[CaseResult, np.ndarray]:
    """
    Run one tone through forward, analysis, inverse and every check.

    Nothing but the spectrum dump is printed here; reporting failures is
    left to the caller.  Returns the result and the bin powers.
    """
    n, domain, k = case.n, case.domain, case.k
    tone = synthesize_tone(n, domain, k, case.m, out=buffers.x)

    if verbose:
        print(f"bin {k}: dphi = {tone.dphi:f} for freq {tone.freq:f}")

    # Packed path stages the packed spectrum in z.
    spectrum = adapter.forward(buffers.x, buffers.y, buffers.w, case.layout, scratch=buffers.z)

    powers = power_spectrum(spectrum.data, n, domain)
    if verbose or print_spectrum:
        _print_powers(case, powers)

    checks = [
        check_dynamic_range(powers, k, n, domain),
        check_phase(spectrum.data, n, domain, k, tone.phi0, tone.amp),
        check_magnitude(float(powers[k]), n, domain, k, tone.amp),
    ]

    # Cross-check against the other forward path before z is reused.
    if case.layout is Layout.PACKED:
        packed = Spectrum(buffers.z, n, domain, Layout.PACKED)
        direct = adapter.forward_ordered(buffers.x, buffers.ref, buffers.w)
        via_packed = spectrum
    else:
        direct = spectrum
        packed = adapter.forward_packed(buffers.x, buffers.ref_packed, buffers.w)
        via_packed = packed.to_ordered(adapter.plan, adapter.engine, buffers.ref)
    packed_again = via_packed.to_packed(adapter.plan, adapter.engine, buffers.packed_again)
    layout_check = check_layout_consistency(
        direct.data, via_packed.data, packed.data, packed_again.data, n, domain, k
    )

    adapter.inverse(spectrum, buffers.z, buffers.w, scratch=buffers.ref)
    checks.append(check_round_trip(buffers.x, buffers.z, n, domain, k))
    checks.append(layout_check)

    result = CaseResult(case=case, amp=float(tone.amp), phi0=tone.phi0, checks=checks)
    return result, powers


def _report_dynamic_range(result: CaseResult, iteration: int) -> None:
    case = result.case
    print(f"{case.label} amp {result.amp:f} iter {iteration}:")
    print(result.check("dynamic_range").message)
    print()


def report_case(result: CaseResult, iteration: int) -> None:
    """Print every failing check of a case."""
    for c in result.failures:
        if c.name == "dynamic_range":
            _report_dynamic_range(result, iteration)
        else:
            print(c.message)


def run_case(
    adapter: TransformAdapter,
    buffers: Buffers,
    case: ToneCase,
    config: Optional[SweepConfig] = None,
) -> CaseResult:
    """
    Quiet pass, then a verbose replay when the dynamic range check failed.

    The replay's result is the one recorded.
    """
    config = config or SweepConfig()
    result, _ = evaluate_case(adapter, buffers, case, print_spectrum=config.print_spectrum)
    if not result.check("dynamic_range").failed:
        report_case(result, iteration=0)
        return result

    _report_dynamic_range(result, iteration=0)
    result, powers = evaluate_case(adapter, buffers, case, verbose=True)
    result.replayed = True
    report_case(result, iteration=1)

    if config.plot_dir:
        _save_plot(result, powers, config.plot_dir)
    return result


def _save_plot(result: CaseResult, powers: np.ndarray, plot_dir: str) -> None:
    # matplotlib is only needed once a case actually fails
    from .plotting import plot_case_spectrum

    case = result.case
    filename = (
        f"{case.domain.value}_{case.layout.value}_n{case.n}_bin{case.k}.png"
    )
    try:
        os.makedirs(plot_dir, exist_ok=True)
        path = plot_case_spectrum(powers, result, os.path.join(plot_dir, filename))
    except OSError as exc:
        warnings.warn(f"Could not save spectrum plot {filename}: {exc}")
        return
    print(f"Saved: {path}")


# ===========================================================================
# Configuration, size and full sweep
# ===========================================================================


def run_configuration(
    n: int,
    domain: Domain,
    layout: Layout,
    config: Optional[SweepConfig] = None,
) -> ConfigResult:
    """
    All tone bins of one (size, domain, layout) configuration.

    A plan the engine refuses, by raising PlanError or by returning None,
    is reported and the configuration is recorded as failed without
    running any case.
    """
    config = config or SweepConfig()
    engine = config.engine
    result = ConfigResult(n=n, domain=domain, layout=layout)

    try:
        plan = engine.new_setup(n, domain)
    except PlanError as exc:
        plan, error = None, str(exc)
    else:
        error = "engine returned no plan"
    if plan is None:
        print(f"Error setting up FFT plan for {domain.label} fft {n}: {error}")
        result.setup_error = error
        return result

    with allocated_configuration(plan, n, domain, engine) as (adapter, buffers):
        for m, k in enumerate(tone_bins(n, domain)):
            case = ToneCase(n=n, domain=domain, layout=layout, k=k, m=m)
            result.cases.append(run_case(adapter, buffers, case, config))
    return result


def run_size(n: int, config: Optional[SweepConfig] = None) -> SizeResult:
    """Every domain/layout configuration of size n."""
    config = config or SweepConfig()
    result = SizeResult(n=n)
    for domain, layout in CONFIGURATIONS:
        result.configs.append(run_configuration(n, domain, layout, config))
    if not result.failed:
        print(f"tests for size {n} succeeded successfully.")
    return result


def run_sweep(config: Optional[SweepConfig] = None) -> SweepResult:
    """Run every size of the sweep and fold the results."""
    config = config or SweepConfig()
    result = SweepResult()
    for n in sweep_sizes(config.min_size, config.max_size):
        result.sizes.append(run_size(n, config))
    if not result.failed:
        print("all tests succeeded successfully.")
    return result
