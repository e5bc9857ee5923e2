"""
Backend Rivora: reputation scoring for Stellar accounts.

Scores an account's on-chain activity (risk score, health score, user type)
with a rule engine or learned regressors, and persists the resulting profile
on the Stellar ledger through a Soroban contract or native account data entries.
"""

__version__ = "1.0.0"
