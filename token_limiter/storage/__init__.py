"""
Storage backends for usage ledgers.
"""
