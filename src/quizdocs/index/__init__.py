"""Corpus bundle loading, lexical search and context expansion."""
