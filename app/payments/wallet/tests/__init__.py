"""Tests for the wallet package."""
