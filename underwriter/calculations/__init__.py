"""
Financial Calculation Engine

Core calculation modules for real estate underwriting: loan math,
single-period metrics, T12 roll-ups, IRR and the multi-year proforma.
"""

from underwriter.calculations import assumptions, irr, loan, napkin, proforma, t12

__all__ = ["assumptions", "irr", "loan", "napkin", "proforma", "t12"]
