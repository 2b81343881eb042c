"""
Shared Kernel Module
====================

Shared infrastructure used by every bounded context (currently only the
AI assistant).

Architecture Pattern: Modular Monolith
- Each module is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add assistant business logic to the shared kernel.
"""

__version__ = "1.0.0"
