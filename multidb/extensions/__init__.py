"""Integrations with test runners."""
