"""Building blocks for a small package manager: gzip, tar and package
extraction, file utilities, mode strings, a hash table and an ordered
work list."""

__version__ = "0.1.0"