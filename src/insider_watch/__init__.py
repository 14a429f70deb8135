"""
Insider Watch

Scores recent Polymarket trades for insider-like behavior with a weighted
rule engine and summarizes the flagged trades.
"""

__version__ = "0.1.0"
