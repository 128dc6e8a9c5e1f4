"""Run the oracle sweep with ``python -m fft_oracle``."""

from .cli import main

raise SystemExit(main())
