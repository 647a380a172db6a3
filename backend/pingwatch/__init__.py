"""pingwatch - scheduled HTTP(S) uptime probing."""
__version__ = "1.0.0"
