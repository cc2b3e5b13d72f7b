"""
Fee schedule (aranceles): two-tier bank-wide / lawyer-specific pricing.
"""
from .fee_resolver import FeeResolver, UNSET, SOURCE_BANK, SOURCE_LAWYER

__all__ = [
    "FeeResolver",
    "UNSET",
    "SOURCE_BANK",
    "SOURCE_LAWYER",
]
