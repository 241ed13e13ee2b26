"""
VIP fee-discount hook: verifiable volume aggregation and tiered swap fees.
"""
