"""
Core modules for Dispenser Billing.

This package contains the dispenser registry, the tap event ledger,
pricing, and usage aggregation.
"""
