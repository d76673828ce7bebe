"""
ISP Finder - locate, rank and compare internet service providers by city.
"""

__version__ = "1.0.0"
