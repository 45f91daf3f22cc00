"""Chess rules and search core: legal move generation, FEN and a timed search."""

__version__ = "0.1.0"
