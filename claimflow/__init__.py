"""
claimflow - Claims Management Backend.

Claim lifecycle (state machine + transactional updates), scope-based access
control, and claim file / invoice sub-resources.
"""

__version__ = "1.0.0"
