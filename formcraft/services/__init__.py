"""Services package for formcraft."""
