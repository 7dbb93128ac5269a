"""watermate: order lifecycle and notification fanout for a water-delivery marketplace."""

__version__ = "0.1.0"
