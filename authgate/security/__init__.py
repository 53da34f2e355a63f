"""Security subsystems of authgate."""
