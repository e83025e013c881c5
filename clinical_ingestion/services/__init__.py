"""Service layer: file inspection, response interpretation, logging and mail."""
