"""
=============================================================================
CHALLENGES.PY — Motor de Desafíos
=============================================================================
Gestiona el ciclo de vida de una inscripción:

  join ──→ ACTIVE ──check-in──→ ... ──100%──→ COMPLETED (puntos completos)
              │
              ├── abandon ───────────────────→ ABANDONED (puntos parciales)
              └── vence el plazo ────────────→ FAILED    (puntos parciales)

Secciones:
  1. CATÁLOGO      → listar / buscar desafíos activos
  2. INSCRIPCIÓN   → unirse (una sola inscripción activa por desafío)
  3. CHECK-INS     → registrar progreso + recalcular estado derivado
  4. LIQUIDACIÓN   → abandonar / fallar por plazo vencido
  5. CONSULTAS     → mis desafíos, historial, estadísticas

Las funciones lanzan excepciones de exceptions.py; main.py las convierte
en respuestas JSON. Los duplicados los detecta la BD (índices únicos),
aquí solo se traducen a un error legible.
"""

import logging
import math
from datetime import date, datetime, timedelta
from typing import NamedTuple, Optional

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from exceptions import (
    AlreadyEnrolledError, DuplicateCheckinError, NotFoundError, ValidationError
)
from models import (
    Challenge, UserChallenge, ChallengeProgress, ChallengeStatus, ChallengeType,
    ChallengeCategory, ChallengeDifficulty, ProgressType, FailureReason,
    TERMINAL_STATUSES, utc_now
)
from progress import ProgressSnapshot, compute_progress, partial_points, required_units
import messages

logger = logging.getLogger("plounix.challenges")

NOT_ACTIVE_DETAIL = "Challenge not found or not active"

DIFFICULTY_ORDER = case(
    (Challenge.difficulty == "easy", 0),
    (Challenge.difficulty == "medium", 1),
    (Challenge.difficulty == "hard", 2),
    else_=3,
)


class CheckInResult(NamedTuple):
    progress: ChallengeProgress
    user_challenge: UserChallenge
    is_complete: bool
    message: str


class AbandonResult(NamedTuple):
    user_challenge: UserChallenge
    partial_points: int
    message: str


# =============================================================================
# ===================== 1. CATÁLOGO ===========================================
# =============================================================================

def list_challenges(db: Session, category: Optional[str] = None, difficulty: Optional[str] = None) -> list[Challenge]:
    """Desafíos activos: primero los fáciles, y dentro de cada nivel los más populares"""
    query = db.query(Challenge).filter(Challenge.is_active == True)

    if category:
        if category not in {c.value for c in ChallengeCategory}:
            raise ValidationError(f"Unknown category: {category}")
        query = query.filter(Challenge.category == category)
    if difficulty:
        if difficulty not in {d.value for d in ChallengeDifficulty}:
            raise ValidationError(f"Unknown difficulty: {difficulty}")
        query = query.filter(Challenge.difficulty == difficulty)

    return query.order_by(DIFFICULTY_ORDER, Challenge.total_participants.desc(), Challenge.id).all()


def get_active_challenge(db: Session, challenge_id: int) -> Challenge:
    challenge = db.query(Challenge).filter(
        Challenge.id == challenge_id,
        Challenge.is_active == True
    ).first()
    if not challenge:
        raise NotFoundError("Challenge not found")
    return challenge


# =============================================================================
# ===================== 2. INSCRIPCIÓN ========================================
# =============================================================================

def join_challenge(db: Session, user_id: str, challenge_id: int, now: Optional[datetime] = None) -> UserChallenge:
    """
    Inscribe al usuario en un desafío del catálogo.

    Flujo:
      1. El desafío tiene que existir y estar activo
      2. No puede haber otra inscripción ACTIVA del mismo usuario
      3. Se crea la inscripción con plazo = ahora + duration_days
      4. total_participants +1 (métrica orientativa)
    """
    now = now or utc_now()
    challenge = get_active_challenge(db, challenge_id)

    existing = db.query(UserChallenge).filter(
        UserChallenge.user_id == user_id,
        UserChallenge.challenge_id == challenge_id,
        UserChallenge.status == ChallengeStatus.active.value
    ).first()
    if existing:
        # Si ya venció, se cierra y deja paso a la nueva inscripción
        if not expire_if_overdue(existing, now):
            raise AlreadyEnrolledError()
        db.flush()

    previous_attempts = db.query(UserChallenge).filter(
        UserChallenge.user_id == user_id,
        UserChallenge.challenge_id == challenge_id,
        UserChallenge.status.in_(TERMINAL_STATUSES)
    ).count()

    user_challenge = UserChallenge(
        user_id=user_id,
        challenge_id=challenge.id,
        status=ChallengeStatus.active.value,
        progress_percent=0,
        checkins_completed=0,
        checkins_required=required_units(challenge, challenge.duration_days),
        current_streak=0,
        joined_at=now,
        started_at=now,
        deadline=now + timedelta(days=challenge.duration_days),
        partial_completion_percent=0,
        points_earned=0,
        can_retry=True,
        retry_count=previous_attempts,
    )
    db.add(user_challenge)
    challenge.total_participants = (challenge.total_participants or 0) + 1

    try:
        db.commit()
    except IntegrityError:
        # Otra petición simultánea ganó la carrera
        db.rollback()
        raise AlreadyEnrolledError()

    db.refresh(user_challenge)
    logger.info(f"🎯 {user_id} se unió a '{challenge.title}' (intento {previous_attempts + 1})")
    return user_challenge


# =============================================================================
# ===================== 3. CHECK-INS ==========================================
# =============================================================================

def get_owned_active(db: Session, user_id: str, user_challenge_id: int, now: Optional[datetime] = None) -> UserChallenge:
    """
    Inscripción ACTIVA del usuario. Antes de devolverla se revisa el plazo:
    si ya venció se liquida como fallida y se responde como "no activa".
    """
    now = now or utc_now()
    user_challenge = db.query(UserChallenge).filter(
        UserChallenge.id == user_challenge_id,
        UserChallenge.user_id == user_id,
        UserChallenge.status == ChallengeStatus.active.value
    ).first()
    if not user_challenge:
        raise NotFoundError(NOT_ACTIVE_DETAIL)

    if expire_if_overdue(user_challenge, now):
        db.commit()
        raise NotFoundError(NOT_ACTIVE_DETAIL)

    return user_challenge


def check_in(
    db: Session,
    user_id: str,
    user_challenge_id: int,
    checkin_date: Optional[date] = None,
    completed: bool = True,
    note: Optional[str] = None,
    value: Optional[float] = None,
    now: Optional[datetime] = None,
) -> CheckInResult:
    """
    Registra un check-in y recalcula el progreso en la misma petición.

    - Sin fecha → hoy (daily_checkin)
    - Con fecha pasada (desde el día en que se unió) → retroactive_checkin
    - Fecha futura o anterior a la inscripción → ValidationError
    - Dos check-ins para la misma fecha → DuplicateCheckin, sin tocar el progreso
    """
    now = now or utc_now()
    user_challenge = get_owned_active(db, user_id, user_challenge_id, now)

    today = now.date()
    checkin_date = checkin_date or today

    # Solo días ya vividos dentro del desafío: desde que se unió hasta hoy
    if checkin_date > today:
        raise ValidationError("Check-in date cannot be in the future")
    if checkin_date < user_challenge.joined_at.date():
        raise ValidationError("Check-in date is before you joined this challenge")

    existing = db.query(ChallengeProgress.id).filter(
        ChallengeProgress.user_challenge_id == user_challenge.id,
        ChallengeProgress.checkin_date == checkin_date
    ).first()
    if existing:
        logger.warning(f"⚠️ Check-in repetido: inscripción {user_challenge.id}, fecha {checkin_date}")
        raise DuplicateCheckinError()

    progress_type = ProgressType.daily_checkin if checkin_date == today else ProgressType.retroactive_checkin

    progress = ChallengeProgress(
        user_challenge_id=user_challenge.id,
        progress_type=progress_type.value,
        checkin_date=checkin_date,
        completed=completed,
        note=note or None,
        value=value,
        created_at=now,
    )
    db.add(progress)

    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise DuplicateCheckinError()

    snapshot = recompute_progress(db, user_challenge, now)
    db.commit()
    db.refresh(progress)
    db.refresh(user_challenge)

    message = messages.checkin_message(
        user_challenge, user_challenge.challenge.challenge_type, snapshot.is_complete
    )
    logger.info(
        f"📝 Check-in {checkin_date} en inscripción {user_challenge.id}: "
        f"{user_challenge.checkins_completed}/{user_challenge.checkins_required} "
        f"({user_challenge.progress_percent}%)"
    )
    return CheckInResult(progress, user_challenge, snapshot.is_complete, message)


def recompute_progress(db: Session, user_challenge: UserChallenge, now: Optional[datetime] = None) -> ProgressSnapshot:
    """
    Copia en la inscripción el estado derivado de sus check-ins y, si llega
    al 100%, la marca como completada con los puntos completos.
    No hace commit.
    """
    now = now or utc_now()
    challenge = user_challenge.challenge

    checkins = db.query(ChallengeProgress).filter(
        ChallengeProgress.user_challenge_id == user_challenge.id
    ).order_by(ChallengeProgress.checkin_date).all()

    snapshot = compute_progress(challenge, checkins, user_challenge.checkins_required)

    user_challenge.checkins_completed = snapshot.checkins_completed
    user_challenge.current_streak = snapshot.current_streak
    user_challenge.progress_percent = snapshot.progress_percent

    if snapshot.is_complete and user_challenge.is_active:
        user_challenge.status = ChallengeStatus.completed.value
        user_challenge.completed_at = now
        user_challenge.points_earned = challenge.points_full
        logger.info(f"🏆 Inscripción {user_challenge.id} completada: +{challenge.points_full} puntos")

    return snapshot


# =============================================================================
# ===================== 4. LIQUIDACIÓN ========================================
# =============================================================================

def _settle(user_challenge: UserChallenge, status: ChallengeStatus, reason: FailureReason, now: datetime) -> int:
    """Cierra una inscripción activa sin completar. Devuelve los puntos parciales."""
    challenge = user_challenge.challenge

    if challenge.challenge_type == ChallengeType.streak.value:
        units = user_challenge.current_streak
    else:
        units = user_challenge.checkins_completed

    points = partial_points(
        challenge.points_full,
        challenge.points_partial_enabled,
        user_challenge.progress_percent or 0,
        units,
        user_challenge.checkins_required,
    )

    user_challenge.status = status.value
    user_challenge.failed_at = now
    user_challenge.failure_reason = reason.value
    user_challenge.partial_completion_percent = user_challenge.progress_percent or 0
    user_challenge.points_earned = points
    return points


def abandon_challenge(db: Session, user_id: str, user_challenge_id: int, now: Optional[datetime] = None) -> AbandonResult:
    """Abandono voluntario: puntos parciales si el desafío los permite"""
    now = now or utc_now()
    user_challenge = get_owned_active(db, user_id, user_challenge_id, now)

    points = _settle(user_challenge, ChallengeStatus.abandoned, FailureReason.manual_abandonment, now)
    db.commit()
    db.refresh(user_challenge)

    logger.info(f"🏳️ Inscripción {user_challenge.id} abandonada al {user_challenge.progress_percent}% (+{points} puntos)")
    return AbandonResult(user_challenge, points, messages.abandon_message(points))


def is_overdue(user_challenge: UserChallenge, now: datetime) -> bool:
    return (
        user_challenge.is_active
        and user_challenge.deadline is not None
        and now > user_challenge.deadline
        and (user_challenge.progress_percent or 0) < 100
    )


def expire_if_overdue(user_challenge: UserChallenge, now: Optional[datetime] = None) -> bool:
    """
    Si el plazo venció sin llegar al 100%, marca la inscripción como fallida
    con puntos parciales. Devuelve True si la cambió. No hace commit.
    """
    now = now or utc_now()
    if not is_overdue(user_challenge, now):
        return False

    points = _settle(user_challenge, ChallengeStatus.failed, FailureReason.deadline_passed, now)
    logger.info(f"⌛ {messages.expiry_message(user_challenge.challenge.title, points)} (inscripción {user_challenge.id})")
    return True


def expire_overdue_challenges(db: Session, now: Optional[datetime] = None) -> int:
    """Barrido periódico: falla todas las inscripciones activas con el plazo vencido"""
    now = now or utc_now()

    overdue = db.query(UserChallenge).filter(
        UserChallenge.status == ChallengeStatus.active.value,
        UserChallenge.deadline < now,
        UserChallenge.progress_percent < 100
    ).all()

    expired = sum(1 for uc in overdue if expire_if_overdue(uc, now))
    if expired:
        db.commit()
    return expired


# =============================================================================
# ===================== 5. CONSULTAS ==========================================
# =============================================================================

def days_left(user_challenge: UserChallenge, now: datetime) -> int:
    remaining = (user_challenge.deadline - now).total_seconds()
    return max(0, math.ceil(remaining / 86400))


def list_user_active_challenges(db: Session, user_id: str, now: Optional[datetime] = None) -> list[tuple[UserChallenge, int]]:
    """Desafíos activos del usuario con los días restantes, el plazo más cercano primero"""
    now = now or utc_now()

    rows = db.query(UserChallenge).filter(
        UserChallenge.user_id == user_id,
        UserChallenge.status == ChallengeStatus.active.value
    ).order_by(UserChallenge.deadline).all()

    expired = [uc for uc in rows if expire_if_overdue(uc, now)]
    if expired:
        db.commit()

    return [(uc, days_left(uc, now)) for uc in rows if uc.is_active]


def get_progress_history(db: Session, user_id: str, user_challenge_id: int) -> list[ChallengeProgress]:
    """Check-ins de una inscripción del usuario (cualquier estado), del más antiguo al más reciente"""
    user_challenge = db.query(UserChallenge).filter(
        UserChallenge.id == user_challenge_id,
        UserChallenge.user_id == user_id
    ).first()
    if not user_challenge:
        raise NotFoundError("Challenge not found")

    return db.query(ChallengeProgress).filter(
        ChallengeProgress.user_challenge_id == user_challenge.id
    ).order_by(ChallengeProgress.checkin_date).all()


def user_stats(db: Session, user_id: str) -> dict:
    """Resumen de desafíos del usuario"""
    rows = db.query(UserChallenge).filter(UserChallenge.user_id == user_id).all()

    by_status = {status.value: 0 for status in ChallengeStatus}
    for uc in rows:
        by_status[uc.status] = by_status.get(uc.status, 0) + 1

    finished = sum(by_status[s] for s in TERMINAL_STATUSES)
    completed = by_status[ChallengeStatus.completed.value]

    return {
        "total_challenges": len(rows),
        "active_challenges": by_status[ChallengeStatus.active.value],
        "completed_challenges": completed,
        "failed_challenges": by_status[ChallengeStatus.failed.value],
        "abandoned_challenges": by_status[ChallengeStatus.abandoned.value],
        "total_points": sum(uc.points_earned or 0 for uc in rows),
        "success_rate": round(completed / finished * 100, 1) if finished > 0 else 0,
        "current_streak": max(
            (uc.current_streak or 0 for uc in rows if uc.is_active), default=0
        ),
    }


def global_stats(db: Session) -> dict:
    """Estadísticas globales para la landing: miembros y desafíos completados"""
    total_entries = db.query(func.count(UserChallenge.id)).scalar() or 0
    total_members = db.query(func.count(func.distinct(UserChallenge.user_id))).scalar() or 0
    completed = db.query(func.count(UserChallenge.id)).filter(
        (UserChallenge.status == ChallengeStatus.completed.value)
        | (UserChallenge.progress_percent >= 100)
    ).scalar() or 0

    return {
        "totalMembers": total_members,
        "completedChallenges": completed,
        "totalChallengeEntries": total_entries,
        "timestamp": utc_now().isoformat(),
    }
