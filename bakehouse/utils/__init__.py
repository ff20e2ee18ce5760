"""
Utility modules for the Bakehouse inventory application.

This package contains configuration, constants and datetime helpers.
"""
