"""Rules component tests."""
