"""Legal intake backend: intake links, conversational and form intake, client conversion."""

__version__ = "0.1.0"
