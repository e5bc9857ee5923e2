"""
API server package: HTTP/REST interface.

Exposes account scores, batch scoring, on-chain verification, and the
two-phase save flow (unsigned draft, external signing, submit). Delegates to
ReputationService for all domain work.
"""
