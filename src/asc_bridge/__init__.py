"""
asc-bridge — incremental AssemblyScript compile bridge and browser verification harness.

Purpose
- Package root. Defines package metadata and import boundaries.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
- Heavy optional dependencies (playwright, werkzeug) are imported by the harness only.
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
