"""
Security module for the application.

This module provides audit logging for quiz access:
- Unauthorized access
- Eligibility denials
- Window violations and forced submits
"""

from .security_logger import SecurityLogger

__all__ = [
    'SecurityLogger',
]
