"""FS-Quiz question crawling and fuzzy matching."""
