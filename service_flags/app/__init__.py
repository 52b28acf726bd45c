"""
Flags Service package.
"""
