"""
ownerstore - single-owner, access-controlled secret store
"""

__version__ = "0.1.0"
__logo__ = "🔐"
