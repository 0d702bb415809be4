"""safesweep: scan, classify, back up and securely remove reclaimable items."""

__version__ = "0.1.0"
