"""ghostfuzz — stateful invariant fuzzing for token ledgers.

Drives randomised call sequences through a handler that tracks actors and
ghost accounting, checks ledger invariants after every call and shrinks
failing sequences to a minimal reproducer.
"""

__version__ = "0.1.0"
