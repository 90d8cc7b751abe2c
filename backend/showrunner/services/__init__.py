"""Activity services: timers, scoring and the activity variants.

This package contains the game mechanics. Socket handlers and HTTP routes
reach it only through the router and the state store, keeping transport
concerns separated from the activities themselves.
"""
