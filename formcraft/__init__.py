"""formcraft package."""
