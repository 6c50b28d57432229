"""
Core package init for facematch.

Face descriptor matching and the photo face-record lifecycle.
"""

__all__ = [
    "config",
    "errors",
    "io_utils",
    "lifecycle",
    "recognition",
    "store",
    "types",
]
