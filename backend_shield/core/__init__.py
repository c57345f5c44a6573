"""
Core utilities — shared exception taxonomy and cross-cutting helpers.
"""
