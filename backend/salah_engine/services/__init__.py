"""Service Layer — async orchestration around the pure core (cache, fallback, countdown)."""
