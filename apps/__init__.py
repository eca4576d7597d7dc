"""Domain apps of the CourtBook platform."""
