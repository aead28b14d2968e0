"""Local Pedersen range-proof backend."""
