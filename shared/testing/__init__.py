"""Helpers the root conftest uses to prepare the test environment."""
