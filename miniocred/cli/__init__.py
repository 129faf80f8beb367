"""miniocred command line interface."""
