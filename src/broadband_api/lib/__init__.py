"""Pure-logic libraries: geocoding, census block lookup, and broadband sources."""
