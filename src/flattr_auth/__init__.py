"""Multi-provider web login service.

Verifies users through carrier identity, phone link and OAuth providers,
reconciles them to a single stored profile and issues a cookie-delivered
session credential.
"""

__version__ = "0.1.0"
