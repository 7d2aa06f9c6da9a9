"""ORII research portal backend."""
