"""KayakNav tidal trip planner.

Simulates kayak trips through published tidal current predictions and finds
the fastest departure windows.
"""

__version__ = "0.1.0"
