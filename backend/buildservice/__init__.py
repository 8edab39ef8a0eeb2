"""
Plugin Build Service
Release-triggered plugin builds and artifact download resolution
"""

__version__ = "1.0.0"
