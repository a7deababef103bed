"""
Item text parsing for the bridge.
"""

from .item_parser import ParsedItem, parse_item_text

__all__ = ["ParsedItem", "parse_item_text"]
