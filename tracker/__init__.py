"""
Tracked releases and their persistent record store.
"""
