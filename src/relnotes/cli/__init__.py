"""relnotes CLI."""
