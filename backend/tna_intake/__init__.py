"""
True North Advocates intake API.

Accepts patient-assistance requests and provider applications from the
public site and serves the staff review dashboard.
"""

__version__ = "1.0.0"
