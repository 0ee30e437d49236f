"""
sayso - Local business discovery and reviews.

Core package: configuration, Supabase access, web app and CLI.
Access control and onboarding progression live in the `onboarding` package.
"""

__version__ = "1.0.0"
