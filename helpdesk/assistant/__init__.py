"""
Assistant Module
================

Bounded Context for the memory-augmented AI support assistant.

Responsibilities:
- Answer chat messages using per-user conversation memory and the FAQ knowledge base
- Gate assistant availability behind an admin-controlled switch
- Extract FAQ entries from documents
- Grow the FAQ knowledge base from completed conversations
"""

__version__ = "1.0.0"
