"""Governance core: vote ledger, tallies, quorum and meeting protocols.

Services live in their own modules and are wired together in
src.main; import them from there rather than from this package.
"""
