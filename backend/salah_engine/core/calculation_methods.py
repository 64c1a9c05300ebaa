"""Calculation Method Registry — immutable named astronomical conventions.

Invariants:
    - Profiles are frozen: callers derive new ones (with_angles / custom_profile), never mutate
    - Exactly one of {isha angle, isha interval} is authoritative: interval > 0 wins
    - Lookup is case-insensitive; unknown ids raise UnknownMethodError
    - remote_method_id is the provider's numeric id (Aladhan); no reconciliation with local angles

Design Decisions:
    - Module-level MappingProxyType registry: read-only, safe to share across threads
    - Turkey carries a 7-minute Maghrib interval (Diyanet temkin after sunset)
    - Custom profiles map to provider method 99 + methodSettings (ADR: remote accepts raw angles)
"""

from dataclasses import dataclass, replace
from types import MappingProxyType

from salah_engine.core.errors import UnknownMethodError

STANDARD_REFRACTION_DEG = 0.833
CUSTOM_METHOD_ID = "CUSTOM"


@dataclass(frozen=True)
class CalculationMethodProfile:
    """Named convention: twilight angles and fixed intervals."""
    id: str
    name: str
    fajr_angle_deg: float
    isha_angle_deg: float
    isha_interval_minutes: int = 0
    maghrib_angle_deg: float = STANDARD_REFRACTION_DEG
    maghrib_interval_minutes: int = 0
    remote_method_id: int = 3

    @property
    def isha_is_interval(self) -> bool:
        return self.isha_interval_minutes > 0

    def with_angles(
        self,
        fajr_angle_deg: float | None = None,
        isha_angle_deg: float | None = None,
    ) -> "CalculationMethodProfile":
        """New profile with replaced twilight angles (location fine-tuning)."""
        return replace(
            self,
            fajr_angle_deg=(
                self.fajr_angle_deg if fajr_angle_deg is None else fajr_angle_deg
            ),
            isha_angle_deg=(
                self.isha_angle_deg if isha_angle_deg is None else isha_angle_deg
            ),
        )

    def remote_settings(self) -> str | None:
        """Provider methodSettings string for custom angles, None for named methods."""
        if self.id != CUSTOM_METHOD_ID:
            return None
        isha = (
            f"{self.isha_interval_minutes} min" if self.isha_is_interval
            else f"{self.isha_angle_deg:g}"
        )
        return f"{self.fajr_angle_deg:g},null,{isha}"


def custom_profile(
    fajr_angle_deg: float,
    isha_angle_deg: float = 0.0,
    isha_interval_minutes: int = 0,
    maghrib_angle_deg: float = STANDARD_REFRACTION_DEG,
    maghrib_interval_minutes: int = 0,
) -> CalculationMethodProfile:
    """Build a caller-supplied profile. Raises ValueError on a contradictory definition."""
    if isha_interval_minutes < 0 or maghrib_interval_minutes < 0:
        raise ValueError("Intervals must be >= 0 minutes")
    if isha_interval_minutes == 0 and isha_angle_deg <= 0:
        raise ValueError("Custom profile needs an Isha angle or an Isha interval")
    if fajr_angle_deg <= 0:
        raise ValueError("Fajr angle must be positive")
    return CalculationMethodProfile(
        id=CUSTOM_METHOD_ID,
        name="Custom Settings",
        fajr_angle_deg=fajr_angle_deg,
        isha_angle_deg=isha_angle_deg,
        isha_interval_minutes=isha_interval_minutes,
        maghrib_angle_deg=maghrib_angle_deg,
        maghrib_interval_minutes=maghrib_interval_minutes,
        remote_method_id=99,
    )


# ─── Built-in Registry ───────────────────────────────────────────

_BUILT_IN: tuple[CalculationMethodProfile, ...] = (
    CalculationMethodProfile(
        "MWL", "Muslim World League", 18.0, 17.0, remote_method_id=3,
    ),
    CalculationMethodProfile(
        "KARACHI", "University of Islamic Sciences, Karachi", 18.0, 18.0,
        remote_method_id=1,
    ),
    CalculationMethodProfile(
        "EGYPTIAN", "Egyptian General Authority of Survey", 19.5, 17.5,
        remote_method_id=5,
    ),
    CalculationMethodProfile(
        "UMMALQURA", "Umm al-Qura University, Makkah", 18.5, 0.0,
        isha_interval_minutes=90, remote_method_id=4,
    ),
    CalculationMethodProfile(
        "ISNA", "Islamic Society of North America", 15.0, 15.0,
        remote_method_id=2,
    ),
    CalculationMethodProfile(
        "TEHRAN", "Institute of Geophysics, University of Tehran", 17.7, 14.0,
        maghrib_angle_deg=4.5, remote_method_id=7,
    ),
    CalculationMethodProfile(
        "GULF", "Gulf Region", 19.5, 0.0,
        isha_interval_minutes=90, remote_method_id=8,
    ),
    CalculationMethodProfile(
        "KUWAIT", "Kuwait Ministry of Awqaf and Islamic Affairs", 18.0, 17.5,
        remote_method_id=9,
    ),
    CalculationMethodProfile(
        "QATAR", "Qatar Ministry of Awqaf and Islamic Affairs", 18.0, 0.0,
        isha_interval_minutes=90, remote_method_id=10,
    ),
    CalculationMethodProfile(
        "TURKEY", "Diyanet İşleri Başkanlığı, Turkey", 18.0, 17.0,
        maghrib_interval_minutes=7, remote_method_id=13,
    ),
    CalculationMethodProfile(
        "SINGAPORE", "Majlis Ugama Islam Singapura", 20.0, 18.0,
        remote_method_id=11,
    ),
    CalculationMethodProfile(
        "FRANCE", "Union des Organisations Islamiques de France", 12.0, 12.0,
        remote_method_id=12,
    ),
    CalculationMethodProfile(
        "RUSSIA", "Spiritual Administration of Muslims of Russia", 16.0, 15.0,
        remote_method_id=14,
    ),
)

METHODS = MappingProxyType({m.id: m for m in _BUILT_IN})


def get_method(method_id: str) -> CalculationMethodProfile:
    """Look up a built-in profile by id (case-insensitive)."""
    key = method_id.strip().upper().replace("-", "").replace("_", "")
    profile = METHODS.get(key)
    if profile is None:
        raise UnknownMethodError(method_id)
    return profile


def list_methods() -> list[CalculationMethodProfile]:
    """All built-in profiles in registry order."""
    return list(_BUILT_IN)
