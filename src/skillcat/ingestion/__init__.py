"""Repository admission, marker parsing, fingerprinting and indexing."""
