"""CSS value parsing into design-tool paint, typography and geometry primitives.

Every parser here is total: malformed input yields a documented fallback
instead of an exception, so one bad declaration never costs a node.
"""

from .colors import parse_color
from .gradients import parse_gradient
from .translator import ParsedStyle, translate_styles

__all__ = ["ParsedStyle", "parse_color", "parse_gradient", "translate_styles"]
