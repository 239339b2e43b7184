"""
CLI Package.

Command line interface of the Dormant Access Engine.
"""
