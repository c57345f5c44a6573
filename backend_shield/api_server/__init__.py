"""
API server package — HTTP interface to the scan pipeline.

Exposes risk scans, simulations and suggested actions to clients. Handles
client identity and rate limiting, and delegates to the upstream and
analysis layers for data.
"""
