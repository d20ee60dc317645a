"""
ShaderWatch.

Builds rust-gpu shader crates to SPIR-V, once or on every change.
Requires Python 3.11+.
"""

__version__ = "0.1.0"
