"""printpos - pricing, checkout and order normalization for a print shop POS."""

__version__ = "0.1.0"
