"""
Helpdesk Assistant
==================

AI chat assistant for the support desk.
"""

__version__ = "1.0.0"
