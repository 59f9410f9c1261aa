"""Simulated chain environment and the wrapped-ether ledger under test."""
