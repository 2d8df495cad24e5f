"""
=============================================================================
PROGRESS.PY — Cálculo del progreso de un desafío
=============================================================================
Funciones PURAS: reciben la lista de check-ins y devuelven el estado
derivado (check-ins completados, racha, porcentaje). No tocan la BD.

Se ejecutan después de CADA check-in y el resultado se copia en la
fila de user_challenges.

Reglas:
  - checkins_completed = check-ins con completed=True
  - racha = días seguidos hacia atrás desde el último check-in,
    se corta en el primer hueco o en un check-in no completado
  - flexible / time_bound → porcentaje = completados / requeridos
  - streak                → porcentaje = racha / días seguidos requeridos
  - porcentaje = min(100, floor(...)), llegar a 100 = desafío completado
"""

import math
from dataclasses import dataclass
from fractions import Fraction
from typing import Iterable, Optional

from models import ChallengeType


@dataclass(frozen=True)
class ProgressSnapshot:
    """Estado derivado de un desafío en un momento dado"""
    checkins_completed: int
    current_streak: int
    progress_percent: int
    progress_units: int
    # progress_units → lo que cuenta para el porcentaje (check-ins o días de racha)
    required_units: Optional[int]

    @property
    def is_complete(self) -> bool:
        return self.progress_percent >= 100


# =============================================================================
# ===================== RACHAS ================================================
# =============================================================================

def compute_streak(checkins: Iterable) -> int:
    """
    Longitud de la racha final: días de calendario consecutivos que
    terminan en el check-in más reciente.

    Ejemplo: check-ins los días 1, 2, 3 y 5 → racha = 1 (el día 4 la rompe)
    """
    ordered = sorted(checkins, key=lambda c: c.checkin_date, reverse=True)

    streak = 0
    previous_date = None
    for checkin in ordered:
        if not checkin.completed:
            break
        if previous_date is not None and (previous_date - checkin.checkin_date).days > 1:
            break
        streak += 1
        previous_date = checkin.checkin_date

    return streak


# =============================================================================
# ===================== PORCENTAJE ============================================
# =============================================================================

def required_units(challenge, fallback: Optional[int] = None) -> Optional[int]:
    """Cuántas unidades hacen falta para completar el desafío"""
    if challenge.challenge_type == ChallengeType.streak.value:
        return challenge.required_consecutive_days or fallback
    return challenge.required_checkins or fallback


def percent_of(units: int, required: Optional[int]) -> int:
    """min(100, floor(units / required × 100)); sin requisito → 0"""
    if not required or required <= 0:
        return 0
    return min(100, (units * 100) // required)


def compute_progress(challenge, checkins: Iterable, fallback_required: Optional[int] = None) -> ProgressSnapshot:
    """
    Recalcula el estado derivado a partir de TODOS los check-ins.

    fallback_required → checkins_required de la inscripción, por si el
    desafío del catálogo no define el requisito de su tipo.
    """
    checkins = list(checkins)
    completed = sum(1 for c in checkins if c.completed)
    streak = compute_streak(checkins)

    if challenge.challenge_type == ChallengeType.streak.value:
        units = streak
    else:
        units = completed

    required = required_units(challenge, fallback_required)

    return ProgressSnapshot(
        checkins_completed=completed,
        current_streak=streak,
        progress_percent=percent_of(units, required),
        progress_units=units,
        required_units=required,
    )


# =============================================================================
# ===================== PUNTOS PARCIALES ======================================
# =============================================================================

def partial_points(
    points_full: int,
    points_partial_enabled: bool,
    progress_percent: int,
    progress_units: Optional[int] = None,
    required: Optional[int] = None,
) -> int:
    """
    Puntos al abandonar o fallar: floor(points_full × progreso).

    El porcentaje guardado está redondeado hacia abajo (3/7 → 42), así que
    si las unidades cuadran con él se usa la fracción exacta:
      points_full=70, 3 de 7 check-ins → floor(70 × 3/7) = 30 (no 29)
    """
    if not points_partial_enabled or not progress_percent or progress_percent <= 0:
        return 0

    ratio = Fraction(min(progress_percent, 100), 100)
    if required and progress_units is not None:
        exact = Fraction(min(progress_units, required), required)
        if math.floor(exact * 100) == progress_percent:
            ratio = exact

    return math.floor(points_full * ratio)
