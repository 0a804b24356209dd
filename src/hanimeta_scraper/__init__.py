"""Metadata scraping backend for DLsite and Hanime."""

__version__ = "0.1.0"
