"""
Command line entry point for gitreclaim.
"""
