"""
Memeplate - meme template store with resolution-independent zones
"""

__version__ = "1.0.0"
