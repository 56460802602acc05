"""AI-assisted capture: the suggestion review queue over session field values."""
