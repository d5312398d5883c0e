"""
HTTP layer for the ledger import service.
"""
