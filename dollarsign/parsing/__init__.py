"""Template scanning and slot descriptor extraction."""

from .descriptor import ExpressionDescriptor, parse_descriptor
from .scanner import CLOSE_ESCAPE, OPEN_ESCAPE, ExpressionSlot, Literal, Segment, scan, unescape

__all__ = [
    "CLOSE_ESCAPE",
    "OPEN_ESCAPE",
    "ExpressionDescriptor",
    "ExpressionSlot",
    "Literal",
    "Segment",
    "parse_descriptor",
    "scan",
    "unescape",
]
