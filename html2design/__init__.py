"""html2design: convert extracted web page elements into design-tool node trees.

Subpackages:
    style         CSS value parsing (colors, gradients, typography, effects)
    nodes         node archetypes, classification, naming and tree building
    integrations  asset fetching and the host design-tool capability
    pipeline      batch scheduling, progress reporting and performance metrics
"""

__version__ = "0.4.0"
