"""
=============================================================================
MODELS.PY — Modelos (Tablas) del Sistema de Desafíos
=============================================================================
Cada clase aquí = una tabla en la base de datos.

RELACIONES:
  CHALLENGE (catálogo, nunca pertenece a nadie)
  └── user_challenges[] (inscripciones de usuarios)
        └── progress[] (check-ins, solo se añaden, nunca se editan)

El user_id es el "sub" del token JWT: la identidad la resuelve otro
servicio, aquí solo se guarda como texto.
"""

from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, String, Boolean, Float, Text, Date, DateTime,
    ForeignKey, JSON, UniqueConstraint, CheckConstraint, Index, text
)
from sqlalchemy.orm import relationship
from database import Base
import enum


def utc_now() -> datetime:
    """Fecha/hora actual en UTC, sin tzinfo (así se guarda en la BD)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# ===================== ENUMS (Tipos predefinidos) ============================
# =============================================================================

class ChallengeType(str, enum.Enum):
    """Mecánica del desafío"""
    flexible = "flexible"        # X check-ins en cualquier día
    streak = "streak"            # X días seguidos sin fallar
    time_bound = "time_bound"    # X check-ins antes de la fecha límite

class ValidationMethod(str, enum.Enum):
    manual = "manual"
    automatic = "automatic"
    hybrid = "hybrid"

class ChallengeDifficulty(str, enum.Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"

class ChallengeCategory(str, enum.Enum):
    savings = "savings"
    budgeting = "budgeting"
    discipline = "discipline"
    spending = "spending"
    investing = "investing"

class ChallengeStatus(str, enum.Enum):
    """
    Máquina de estados de una inscripción:
      active → completed | failed | abandoned
    Los tres últimos son terminales.
    """
    active = "active"
    completed = "completed"
    failed = "failed"
    abandoned = "abandoned"

class ProgressType(str, enum.Enum):
    daily_checkin = "daily_checkin"
    retroactive_checkin = "retroactive_checkin"
    milestone = "milestone"
    completion = "completion"
    failure = "failure"

class FailureReason(str, enum.Enum):
    manual_abandonment = "manual_abandonment"
    deadline_passed = "deadline_passed"


TERMINAL_STATUSES = (
    ChallengeStatus.completed.value,
    ChallengeStatus.failed.value,
    ChallengeStatus.abandoned.value,
)


# =============================================================================
# ===================== TABLA 1: CHALLENGES ===================================
# =============================================================================
# Catálogo de desafíos disponibles

class Challenge(Base):
    __tablename__ = "challenges"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # ── Datos básicos ──
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(30), default=ChallengeCategory.savings.value)
    icon = Column(String(10), default="🎯")
    tips = Column(JSON, nullable=True)
    # tips → ["Cook rice at home, buy ulam only", ...]

    # ── Mecánica ──
    challenge_type = Column(String(20), nullable=False, default=ChallengeType.flexible.value)
    validation_method = Column(String(20), default=ValidationMethod.manual.value)

    # ── Duración y requisitos ──
    duration_days = Column(Integer, nullable=False)
    required_checkins = Column(Integer, nullable=True)
    # required_checkins → para flexible / time_bound
    required_consecutive_days = Column(Integer, nullable=True)
    # required_consecutive_days → para streak
    specific_days = Column(JSON, nullable=True)
    requirements = Column(JSON, nullable=True)
    # requirements → {"spending_limit": 100, "category": "food"}

    # ── Reglas de fallo (descriptivas) ──
    grace_period_hours = Column(Integer, default=0)
    max_missed_days = Column(Integer, default=0)
    failure_condition = Column(Text, nullable=True)

    # ── Recompensas ──
    points_full = Column(Integer, nullable=False, default=0)
    points_partial_enabled = Column(Boolean, default=True)
    badge_icon = Column(String(10), nullable=True)
    badge_title = Column(String(100), nullable=True)

    # ── Dificultad y participación ──
    difficulty = Column(String(20), default=ChallengeDifficulty.easy.value)
    estimated_time_commitment = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True)
    total_participants = Column(Integer, default=0)
    # total_participants → métrica orientativa, no crítica
    success_rate = Column(Float, nullable=True)

    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        CheckConstraint("duration_days > 0", name="ck_challenges_duration_positive"),
        CheckConstraint("points_full >= 0", name="ck_challenges_points_non_negative"),
    )

    user_challenges = relationship("UserChallenge", back_populates="challenge")


# =============================================================================
# ===================== TABLA 2: USER_CHALLENGES ==============================
# =============================================================================
# Una inscripción de un usuario en un desafío del catálogo

class UserChallenge(Base):
    __tablename__ = "user_challenges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    challenge_id = Column(Integer, ForeignKey("challenges.id"), nullable=False)

    # ── Estado ──
    status = Column(String(20), nullable=False, default=ChallengeStatus.active.value)
    progress_percent = Column(Integer, default=0)
    # progress_percent → 0 a 100 (entero, redondeado hacia abajo)
    checkins_completed = Column(Integer, default=0)
    checkins_required = Column(Integer, nullable=True)
    # checkins_required → se congela al unirse (días seguidos si es streak)
    current_streak = Column(Integer, default=0)

    # ── Fechas ──
    joined_at = Column(DateTime, default=utc_now)
    started_at = Column(DateTime, nullable=True)
    deadline = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    failed_at = Column(DateTime, nullable=True)

    # ── Fallo / abandono ──
    failure_reason = Column(String(50), nullable=True)
    partial_completion_percent = Column(Integer, default=0)
    can_retry = Column(Boolean, default=True)
    retry_count = Column(Integer, default=0)

    # ── Resultado ──
    points_earned = Column(Integer, default=0)

    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        # Solo UNA inscripción activa por (usuario, desafío). Las terminadas
        # no cuentan, así se puede reintentar.
        Index(
            "uq_user_challenges_one_active",
            "user_id", "challenge_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    challenge = relationship("Challenge", back_populates="user_challenges")
    progress = relationship(
        "ChallengeProgress",
        back_populates="user_challenge",
        cascade="all, delete-orphan",
        order_by="ChallengeProgress.checkin_date",
    )

    @property
    def is_active(self) -> bool:
        return self.status == ChallengeStatus.active.value


# =============================================================================
# ===================== TABLA 3: CHALLENGE_PROGRESS ===========================
# =============================================================================
# Log de check-ins. Solo se añade: nunca se edita ni se borra.

class ChallengeProgress(Base):
    __tablename__ = "challenge_progress"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_challenge_id = Column(
        Integer, ForeignKey("user_challenges.id", ondelete="CASCADE"), nullable=False, index=True
    )

    progress_type = Column(String(30), nullable=False, default=ProgressType.daily_checkin.value)

    checkin_date = Column(Date, nullable=False)
    # checkin_date → fecha de calendario, no timestamp
    completed = Column(Boolean, default=True)
    note = Column(Text, nullable=True)
    value = Column(Float, nullable=True)
    # value → dato numérico opcional (ej: pesos ahorrados ese día)

    created_at = Column(DateTime, default=utc_now)

    __table_args__ = (
        UniqueConstraint("user_challenge_id", "checkin_date", name="uq_challenge_progress_date"),
    )

    user_challenge = relationship("UserChallenge", back_populates="progress")
