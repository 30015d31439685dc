"""
HTTP trigger API for the library availability tracker.
"""
