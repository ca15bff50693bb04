"""
Underwriting workbench: T12 roll-ups, proforma projections and investment returns.
"""
