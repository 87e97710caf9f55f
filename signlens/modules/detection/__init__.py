"""Hand detector backends, fallback chain and tracking history."""
