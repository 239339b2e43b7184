"""
API Package.

REST surface of the Dormant Access Engine.
"""
