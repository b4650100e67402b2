"""
IncognitoMail - Disposable Email Handles

Hands out disposable email addresses ("handles") that forward to a real
address, each revocable on its own, backed by a Postfix virtual alias map.

License: MIT
Version: 1.0.0
"""

__version__ = "1.0.0"
__license__ = "MIT"

__all__ = [
    "__version__",
    "__license__",
]
