"""quizdocs - rulebook search and FS-Quiz question lookup."""

__version__ = "0.1.0"
