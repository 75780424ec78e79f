"""
figbridge - drive Figma Desktop over the DevTools protocol.
"""

__version__ = "0.1.0"
__logo__ = "◆"
