"""
=============================================================================
SCHEMAS.PY — Esquemas de Validación (Pydantic)
=============================================================================
  - Models (SQLAlchemy) → definen las TABLAS de la BD
  - Schemas (Pydantic) → definen qué DATOS acepta/devuelve la API

Convención de nombres:
  XxxRequest  → cuerpo que envía el cliente (POST)
  XxxResponse → lo que devuelve la API

Las respuestas de join / progress / abandon usan las claves en camelCase
(userChallenge, isComplete, partialPoints) que ya consume el frontend.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Any, Optional


# =============================================================================
# ===================== CATÁLOGO ==============================================
# =============================================================================

class ChallengeResponse(BaseModel):
    id: int
    title: str
    description: str
    category: str
    icon: Optional[str] = None
    tips: Optional[list[str]] = None
    challenge_type: str
    validation_method: Optional[str] = None
    duration_days: int = Field(gt=0)
    required_checkins: Optional[int] = None
    required_consecutive_days: Optional[int] = None
    specific_days: Optional[list[str]] = None
    requirements: Optional[dict[str, Any]] = None
    grace_period_hours: Optional[int] = 0
    max_missed_days: Optional[int] = 0
    failure_condition: Optional[str] = None
    points_full: int = Field(ge=0)
    points_partial_enabled: bool
    badge_icon: Optional[str] = None
    badge_title: Optional[str] = None
    difficulty: str
    estimated_time_commitment: Optional[str] = None
    is_active: bool
    total_participants: int = 0
    success_rate: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    model_config = {"from_attributes": True}

class ChallengeListResponse(BaseModel):
    challenges: list[ChallengeResponse]


# =============================================================================
# ===================== INSCRIPCIONES =========================================
# =============================================================================

class UserChallengeResponse(BaseModel):
    id: int
    user_id: str
    challenge_id: int
    status: str
    progress_percent: int
    checkins_completed: int
    checkins_required: Optional[int] = None
    current_streak: int
    joined_at: datetime
    started_at: Optional[datetime] = None
    deadline: datetime
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    partial_completion_percent: int
    can_retry: bool
    retry_count: int
    points_earned: int
    model_config = {"from_attributes": True}

class ActiveChallengeResponse(UserChallengeResponse):
    """Inscripción activa + datos del catálogo (lo que pinta el tracker)"""
    title: str
    description: str
    icon: Optional[str] = None
    category: str
    challenge_type: str
    difficulty: str
    points_full: int
    days_left: int

class MyChallengesResponse(BaseModel):
    challenges: list[ActiveChallengeResponse]

class JoinResponse(BaseModel):
    success: bool = True
    userChallenge: UserChallengeResponse
    message: str


# =============================================================================
# ===================== CHECK-INS =============================================
# =============================================================================

class CheckInRequest(BaseModel):
    """Todo opcional: sin fecha = hoy, sin completed = completado"""
    completed: Optional[bool] = None
    note: Optional[str] = Field(default=None, max_length=1000)
    checkin_date: Optional[date] = None
    value: Optional[float] = None

class ProgressResponse(BaseModel):
    id: int
    user_challenge_id: int
    progress_type: str
    checkin_date: date
    completed: bool
    note: Optional[str] = None
    value: Optional[float] = None
    created_at: Optional[datetime] = None
    model_config = {"from_attributes": True}

class CheckInResponse(BaseModel):
    success: bool = True
    progress: ProgressResponse
    challenge: UserChallengeResponse
    isComplete: bool
    message: str

class ProgressHistoryResponse(BaseModel):
    progress: list[ProgressResponse]


# =============================================================================
# ===================== ABANDONO ==============================================
# =============================================================================

class AbandonResponse(BaseModel):
    success: bool = True
    partialPoints: int
    message: str


# =============================================================================
# ===================== ESTADÍSTICAS ==========================================
# =============================================================================

class UserStatsResponse(BaseModel):
    total_challenges: int
    active_challenges: int
    completed_challenges: int
    failed_challenges: int
    abandoned_challenges: int
    total_points: int
    success_rate: float
    current_streak: int

class GlobalStatsResponse(BaseModel):
    totalMembers: int
    completedChallenges: int
    totalChallengeEntries: int
    timestamp: str
