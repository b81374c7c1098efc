"""A small distributed file store with DNS, Master, Data and Client nodes over TCP."""

__version__ = "0.1.0"