"""
Library catalog provider: search client and result models.
"""
