"""
Output Module
=============

Persistence of per-frame grid results.
"""

from fishflow.output.store import ArrayStore, VELOCITY_DTYPE, load_store, output_path

__all__ = [
    "ArrayStore",
    "VELOCITY_DTYPE",
    "load_store",
    "output_path",
]
