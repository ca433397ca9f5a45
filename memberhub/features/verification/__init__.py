"""
Public verification feature module.
"""
