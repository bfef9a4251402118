"""Access-code admission service for the personality quiz."""
