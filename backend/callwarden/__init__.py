"""
CallWarden - Backend Application Package

Call-duration enforcement relay:
- API routes for member registration and call lifecycle webhooks
- Per-caller timer management and forced call termination
- Twilio call-control integration
- Privacy-aware logging
"""

__version__ = "0.1.0"
