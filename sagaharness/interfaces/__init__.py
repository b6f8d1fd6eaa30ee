"""
Type aliases and protocols shared across the package.
"""
