"""Rule-file schema and parsing."""
