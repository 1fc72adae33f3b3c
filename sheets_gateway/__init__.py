"""sheets_gateway - Google sign-in and read-only Drive/Sheets proxy."""

__version__ = "1.0.0"
