"""Application shell: settings and wiring."""
