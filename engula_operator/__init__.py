"""Level-triggered controller for Engula Journal and Storage resources."""

__version__ = "0.1.0"
