"""Regional consent compliance engine."""
