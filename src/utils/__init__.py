"""
ModMail Bot - Utils Package
===========================

Stateless helpers usable anywhere in the codebase.

Available Utilities:
    Footer: Standardized embed footer with cached avatar
    Retry: Backoff wrappers for Discord lookups
    Interaction: Safe interaction responses
    Error Handler: Categorized exception reporting
"""

# =============================================================================
# Utility Imports
# =============================================================================

from .footer import FOOTER_TEXT, init_footer, set_footer
from .retry import retry_async, safe_fetch_channel, safe_fetch_user, safe_send
from .error_handler import ErrorHandler


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    # Footer
    "FOOTER_TEXT",
    "init_footer",
    "set_footer",
    # Retry
    "retry_async",
    "safe_fetch_channel",
    "safe_fetch_user",
    "safe_send",
    # Errors
    "ErrorHandler",
]
