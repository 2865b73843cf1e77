"""Transform component tests."""
