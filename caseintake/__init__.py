"""
Case intake service: turns authenticated intake submissions into case graphs.
"""
__version__ = "1.0.0"
