"""GEX signal engine test suite."""
