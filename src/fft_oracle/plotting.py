"""
plotting.py

Spectrum plot of a replayed tone case.

Shows every bin's power in dB, marks the tone bin and the loudest other
bin, and draws the level the other bins must stay below.  Written with the
non-interactive Agg backend so a sweep can run headless.
"""

from __future__ import annotations

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np

from .spectrum import power_to_db
from .thresholds import EXPECTED_DYN_RANGE_DB


def plot_case_spectrum(powers: np.ndarray, result, output_filename: str) -> str:
    """
    Save a power spectrum plot for ``result`` and return the file name.

    Parameters
    ----------
    powers : ndarray
        Power of every bin, indexed by bin number.
    result : CaseResult
        Case the powers were measured for.
    output_filename : str
        PNG path to write.
    """
    case = result.case
    db = np.array([power_to_db(p) for p in powers])
    bins = np.arange(len(db))
    dyn = result.check("dynamic_range")

    fig, ax = plt.subplots(figsize=(12, 5))
    ax.plot(bins, db, color="#1f77b4", linewidth=0.8, label="Bin power")
    ax.plot([case.k], [db[case.k]], "o", color="#2ca02c", label=f"Tone bin {case.k}")
    ax.plot([dyn.bin], [db[dyn.bin]], "x", color="#d62728", markersize=9,
            label=f"Loudest other bin {dyn.bin}")
    ax.axhline(db[case.k] - EXPECTED_DYN_RANGE_DB, color="#ff7f0e", linestyle="--",
               label=f"Tone - {EXPECTED_DYN_RANGE_DB:.0f} dB")

    failed = ", ".join(c.name for c in result.failures) or "none"
    ax.set_title(
        f"{case.label} ({case.layout.value}) bin {case.k} amp {result.amp:.1f}\n"
        f"Dynamic range {dyn.measured:.1f} dB, failed checks: {failed}",
        fontsize=11,
    )
    ax.set_xlabel("Bin")
    ax.set_ylabel("Power (dB)")
    ax.grid(True, alpha=0.3)
    ax.legend(loc="lower right", fontsize=9)

    fig.tight_layout()
    fig.savefig(output_filename, dpi=150, facecolor="white")
    plt.close(fig)
    return output_filename
