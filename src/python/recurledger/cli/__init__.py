"""recurledger command line interface."""
