"""Building blocks of an Ethereum Virtual Machine: opcodes, execution state and instruction semantics."""

__version__ = "0.1.0"

__all__ = [
    "arithmetic",
    "calls",
    "environment",
    "opcodes",
    "state",
]