"""tlog command line interface."""
