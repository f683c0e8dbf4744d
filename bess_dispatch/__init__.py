"""Battery energy storage dispatch package.

This package contains modules for scheduling BESS charge/discharge across
one or more markets:
- optimization: LP model formulation, solver binding and result extraction
"""

__version__ = "0.1.0"
