"""Package built executables into OCI images and gate their publication."""

__version__ = "0.1.0"
