"""User interfaces for pandocflow."""
