"""Error taxonomy for the username attestor."""
