"""
HTTP interface for planet generation and queries.
"""
