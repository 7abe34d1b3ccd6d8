"""vidgen - render declarative scenes into finished videos."""

__version__ = "0.1.0"
