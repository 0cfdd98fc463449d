"""
Processors for HRU table handling, RVH I/O, consolidation and variant comparison.
"""
