"""Clinical signal analysis for hospital ward monitoring."""
