"""
Bernard Pricing Engine - Source Code.

Modules:
- data: Domain records and the DuckDB-backed store
- signals: Occupancy and pace signal providers
- pricing: Nightly rate calculation and stay simulation
- revenue: Revenue targets, rate-type breakdowns and sensitivity analysis
- reporting: Presentation helpers (money and percentage formatting)
"""

__version__ = "0.1.0"
