"""qwallet command line interface."""
