"""
FFT Oracle

Correctness oracle for a single precision FFT engine.  Known single tones
are pushed through forward and inverse transforms in every domain and
spectrum layout, and the results are held against four acceptance checks:
dynamic range, phase, magnitude and round trip reconstruction.

This package provides the following modules:

    thresholds : Acceptance limits and sweep constants
    engine     : scipy.fft backed engine, plans, layouts and reordering
    adapter    : Forward/inverse call-through and the two spectrum layouts
    tones      : Single tone signal synthesis
    spectrum   : Per bin power extraction (real DC/Nyquist packing)
    checks     : The acceptance checks
    sweep      : Size/domain/layout/tone sweep and result folding
    plotting   : Spectrum plots of replayed failures
    cli        : Command line entry point
"""

__version__ = "0.1.0"

# ============================================================================
# Engine boundary
# ============================================================================
from .engine import (
    DEFAULT_ENGINE,
    Direction,
    Domain,
    PlanError,
    ScipyEngine,
    TransformPlan,
    aligned_malloc,
    float_count,
    is_power_of_two,
)
from .adapter import Layout, Spectrum, TransformAdapter

# ============================================================================
# Signal, analysis and checks
# ============================================================================
from .tones import Tone, synthesize_tone
from .spectrum import bin_count, bin_power, bin_value, power_spectrum, power_to_db
from .checks import (
    CheckResult,
    check_dynamic_range,
    check_layout_consistency,
    check_magnitude,
    check_phase,
    check_round_trip,
)

# ============================================================================
# Sweep driver
# ============================================================================
from .sweep import (
    SweepConfig,
    SweepResult,
    ToneCase,
    run_case,
    run_configuration,
    run_size,
    run_sweep,
)

__all__ = [
    "__version__",
    # Engine boundary
    "DEFAULT_ENGINE",
    "Direction",
    "Domain",
    "PlanError",
    "ScipyEngine",
    "TransformPlan",
    "aligned_malloc",
    "float_count",
    "is_power_of_two",
    "Layout",
    "Spectrum",
    "TransformAdapter",
    # Signal, analysis and checks
    "Tone",
    "synthesize_tone",
    "bin_count",
    "bin_power",
    "bin_value",
    "power_spectrum",
    "power_to_db",
    "CheckResult",
    "check_dynamic_range",
    "check_layout_consistency",
    "check_magnitude",
    "check_phase",
    "check_round_trip",
    # Sweep driver
    "SweepConfig",
    "SweepResult",
    "ToneCase",
    "run_case",
    "run_configuration",
    "run_size",
    "run_sweep",
]
