"""
Utility modules for the bridge.
"""
