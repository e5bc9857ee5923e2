"""
Core types shared across scoring, persistence, and the API server:
domain models and the exception taxonomy.
"""
