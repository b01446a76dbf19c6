"""
Detection algorithms for the encounter counter.
"""
