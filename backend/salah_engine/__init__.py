"""Salah Engine Package — prayer times, Qibla bearings, and schedule orchestration.

Invariants:
    - Package root has no import side-effects (only the version constant)

Design Decisions:
    - No re-exports: explicit imports only, no star exports (ADR: ExMA no convention-over-config)
"""

__version__ = "1.0.0"
