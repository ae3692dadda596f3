"""HTTP surface — FastAPI app receiving chat and ledger callbacks."""
