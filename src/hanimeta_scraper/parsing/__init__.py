"""Normalisation and parsing helpers shared by all providers.

Nothing in this package performs I/O; every function takes strings or
parsed BeautifulSoup nodes and returns plain values.
"""
