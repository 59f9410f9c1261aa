"""Handler-based invariant fuzzing engine.

Implements stateful fuzzing with:
  - Actor tracking and bounded argument folding
  - Ghost accounting alongside the system under test
  - Invariant checks after every call
  - Delta-debugging shrinking of failing sequences
"""
