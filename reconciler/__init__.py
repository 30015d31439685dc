"""
Library availability reconciliation: matching, status derivation, the
reconciliation runner, change notifications and the weekly digest.
"""
