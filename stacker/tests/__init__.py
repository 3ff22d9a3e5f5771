"""Tests for stacker."""
