"""Command groups of the actionmap CLI."""
