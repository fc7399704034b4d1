"""Three-way file sync engine for note vaults and object stores."""

__version__ = "0.1.0"
