"""The stacker command."""
