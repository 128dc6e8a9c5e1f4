"""
cli.py

Command line entry point.

Without arguments the full sweep (sizes 32 to 65536) runs and the process
exits with status 0 when every case passed, 1 otherwise.
"""

from __future__ import annotations

import argparse
from typing import List, Optional

from .sweep import SweepConfig, SweepResult, run_sweep, sweep_sizes
from .thresholds import MAX_SIZE, MIN_SIZE


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fft-oracle",
        description="Single tone accuracy sweep of the single precision FFT engine.",
    )
    parser.add_argument("--min-size", type=int, default=MIN_SIZE,
                        help=f"Smallest transform length, power of two (default: {MIN_SIZE})")
    parser.add_argument("--max-size", type=int, default=MAX_SIZE,
                        help=f"Largest transform length, power of two (default: {MAX_SIZE})")
    parser.add_argument("--print-spectrum", action="store_true",
                        help="Print every bin's power for every case")
    parser.add_argument("--plot-dir", default=None,
                        help="Save a spectrum plot of every replayed failure here")
    return parser


def print_summary(result: SweepResult) -> None:
    """Short tally of cases run and failures per check."""
    cases = list(result.cases())
    setup_errors = sum(
        1 for size in result.sizes for config in size.configs if config.setup_error
    )
    print("=" * 60)
    print(f"Sizes: {len(result.sizes)}   cases: {len(cases)}   "
          f"failed cases: {sum(1 for c in cases if c.failed)}")
    for name, count in sorted(result.failure_counts().items()):
        print(f"  {name}: {count} failing case(s)")
    if setup_errors:
        print(f"  plan setup errors: {setup_errors}")
    print("=" * 60)


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run the sweep and return the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = SweepConfig(
        min_size=args.min_size,
        max_size=args.max_size,
        print_spectrum=args.print_spectrum,
        plot_dir=args.plot_dir,
    )
    try:
        sweep_sizes(config.min_size, config.max_size)
    except ValueError as exc:
        parser.error(str(exc))

    result = run_sweep(config)
    print_summary(result)
    return result.exit_status


if __name__ == "__main__":
    raise SystemExit(main())
