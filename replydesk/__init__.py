"""
ReplyDesk
=========

Retrieval-augmented reply assistant for customer-support teams.
"""

__version__ = "1.0.0"
