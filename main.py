"""
=============================================================================
MAIN.PY — La API de Desafíos de Plounix
=============================================================================
Endpoints REST del sistema de desafíos financieros.

Organización por secciones:
  1. CATÁLOGO      → listar desafíos disponibles
  2. INSCRIPCIÓN   → unirse a un desafío
  3. CHECK-INS     → registrar progreso, ver historial
  4. ABANDONO      → abandonar con puntos parciales
  5. MIS DESAFÍOS  → activos + estadísticas personales
  6. STATS         → estadísticas globales (sin login)

Todos los errores salen como {"error": "..."} con su código HTTP.
"""

import os
import logging
import traceback
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from database import get_db, init_db, session_scope
from auth import get_current_user_id
from catalog import seed_challenges
from exceptions import AppException, ValidationError, DatabaseError
from schemas import (
    ChallengeResponse, ChallengeListResponse, UserChallengeResponse,
    ActiveChallengeResponse, MyChallengesResponse, JoinResponse,
    CheckInRequest, CheckInResponse, ProgressResponse, ProgressHistoryResponse,
    AbandonResponse, UserStatsResponse, GlobalStatsResponse
)
import challenges
import messages

# ─────────────────────────────────────────────────────────────────────────────
# LOGGING
# ─────────────────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s"
)
logger = logging.getLogger("plounix.api")

ENABLE_SCHEDULER = os.getenv("ENABLE_SCHEDULER", "true").lower() in ("1", "true", "yes")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


# ─────────────────────────────────────────────────────────────────────────────
# LIFESPAN (Arranque y apagado)
# ─────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Arranque:
      1. Crear tablas si no existen
      2. Insertar el catálogo por defecto
      3. Arrancar el barrido de plazos vencidos

    Apagado:
      - Parar el scheduler
    """
    logger.info("🚀 Arrancando Plounix Challenges...")

    init_db()
    logger.info("✅ Base de datos inicializada")

    with session_scope() as db:
        seed_challenges(db)

    scheduler_started = False
    if ENABLE_SCHEDULER:
        try:
            from scheduler import create_scheduler, start_scheduler
            create_scheduler()
            start_scheduler()
            scheduler_started = True
        except Exception as e:
            logger.error(f"❌ Error arrancando scheduler: {e}")
    else:
        logger.warning("⚠️ Scheduler desactivado (ENABLE_SCHEDULER)")

    logger.info("🎉 Plounix Challenges operativo")

    yield

    logger.info("🛑 Apagando Plounix Challenges...")
    if scheduler_started:
        from scheduler import stop_scheduler
        stop_scheduler()
    logger.info("👋 Apagado completo")


# ─────────────────────────────────────────────────────────────────────────────
# APLICACIÓN FASTAPI
# ─────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Plounix Challenges API",
    description="Desafíos financieros: inscripción, check-ins diarios y puntos",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─────────────────────────────────────────────────────────────────────────────
# ERROR HANDLERS
# ─────────────────────────────────────────────────────────────────────────────

@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Errores esperados (401/404/400...) → {"error": detalle}"""
    logger.warning(f"{type(exc).__name__} en {request.url.path}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Rutas inexistentes (404), método incorrecto (405)... mismo formato {"error"}"""
    logger.warning(f"HTTP {exc.status_code} en {request.method} {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Cuerpo o parámetros mal formados → 400"""
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    error = ValidationError(f"Invalid request: {problems}")
    logger.warning(f"ValidationError en {request.url.path}: {problems}")
    return JSONResponse(status_code=error.status_code, content={"error": error.detail})


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """Fallo de la BD → 500 genérico (el detalle solo va al log)"""
    error = DatabaseError()
    logger.error(f"❌ Error de BD en {request.url.path}: {exc}\n{traceback.format_exc()}")
    return JSONResponse(status_code=error.status_code, content={"error": error.detail})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Cualquier otro error no manejado"""
    logger.error(f"❌ Error no manejado en {request.url}: {exc}\n{traceback.format_exc()}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# =============================================================================
# ===================== HEALTH CHECK ==========================================
# =============================================================================

@app.get("/", tags=["Health"])
def health_check():
    return {"status": "ok", "app": "Plounix Challenges", "version": "1.0.0"}


# =============================================================================
# ===================== SECCIÓN 1: CATÁLOGO ===================================
# =============================================================================

@app.get("/challenges", response_model=ChallengeListResponse, tags=["Catalog"])
def get_challenges(
    category: Optional[str] = None,
    difficulty: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """Desafíos disponibles (no requiere autenticación)"""
    rows = challenges.list_challenges(db, category=category, difficulty=difficulty)
    return ChallengeListResponse(challenges=[ChallengeResponse.model_validate(c) for c in rows])


# =============================================================================
# ===================== SECCIÓN 6: STATS ======================================
# =============================================================================
# Declarado antes de /challenges/{id}/... para que "stats" y "mine" no se
# interpreten como ids.

@app.get("/challenges/stats", response_model=GlobalStatsResponse, tags=["Stats"])
def get_global_stats(db: Session = Depends(get_db)):
    """Miembros que se han unido a algún desafío y desafíos completados"""
    return challenges.global_stats(db)


# =============================================================================
# ===================== SECCIÓN 5: MIS DESAFÍOS ===============================
# =============================================================================

@app.get("/challenges/mine", response_model=MyChallengesResponse, tags=["My Challenges"])
def get_my_challenges(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    """Desafíos activos del usuario, el plazo más cercano primero"""
    rows = challenges.list_user_active_challenges(db, user_id)

    result = []
    for uc, remaining in rows:
        challenge = uc.challenge
        result.append(ActiveChallengeResponse(
            **UserChallengeResponse.model_validate(uc).model_dump(),
            title=challenge.title,
            description=challenge.description,
            icon=challenge.icon,
            category=challenge.category,
            challenge_type=challenge.challenge_type,
            difficulty=challenge.difficulty,
            points_full=challenge.points_full,
            days_left=remaining,
        ))

    return MyChallengesResponse(challenges=result)


@app.get("/challenges/mine/stats", response_model=UserStatsResponse, tags=["My Challenges"])
def get_my_stats(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return challenges.user_stats(db, user_id)


# =============================================================================
# ===================== SECCIÓN 2: INSCRIPCIÓN ================================
# =============================================================================

@app.post("/challenges/{challenge_id}/join", response_model=JoinResponse, tags=["Challenges"])
def join(challenge_id: int, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    """
    Une al usuario a un desafío del catálogo.
    400 si ya tiene una inscripción activa del mismo desafío.
    """
    user_challenge = challenges.join_challenge(db, user_id, challenge_id)
    return JoinResponse(
        userChallenge=UserChallengeResponse.model_validate(user_challenge),
        message=messages.join_message(user_challenge.challenge.title)
    )


# =============================================================================
# ===================== SECCIÓN 3: CHECK-INS ==================================
# =============================================================================

@app.post("/challenges/{user_challenge_id}/progress", response_model=CheckInResponse, tags=["Challenges"])
def log_progress(
    user_challenge_id: int,
    data: Optional[CheckInRequest] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Registra el check-in de un día y devuelve el progreso actualizado.

    Flujo:
      1. La inscripción tiene que ser del usuario y estar activa
      2. Un solo check-in por fecha (el segundo → 400)
      3. Se recalcula el progreso; al llegar a 100% se completa
    """
    data = data or CheckInRequest()
    result = challenges.check_in(
        db,
        user_id,
        user_challenge_id,
        checkin_date=data.checkin_date,
        completed=True if data.completed is None else data.completed,
        note=data.note,
        value=data.value,
    )
    return CheckInResponse(
        progress=ProgressResponse.model_validate(result.progress),
        challenge=UserChallengeResponse.model_validate(result.user_challenge),
        isComplete=result.is_complete,
        message=result.message
    )


@app.get("/challenges/{user_challenge_id}/progress", response_model=ProgressHistoryResponse, tags=["Challenges"])
def get_progress(user_challenge_id: int, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    """Historial de check-ins de una inscripción"""
    rows = challenges.get_progress_history(db, user_id, user_challenge_id)
    return ProgressHistoryResponse(progress=[ProgressResponse.model_validate(p) for p in rows])


# =============================================================================
# ===================== SECCIÓN 4: ABANDONO ===================================
# =============================================================================

@app.post("/challenges/{user_challenge_id}/abandon", response_model=AbandonResponse, tags=["Challenges"])
def abandon(user_challenge_id: int, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    """Abandona un desafío activo. Da puntos parciales si el desafío lo permite."""
    result = challenges.abandon_challenge(db, user_id, user_challenge_id)
    return AbandonResponse(partialPoints=result.partial_points, message=result.message)


# =============================================================================
# ===================== ARRANQUE DIRECTO ======================================
# =============================================================================
# python main.py  (equivale a: uvicorn main:app --host 0.0.0.0 --port 8000)

def run():
    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_level="info",
    )


if __name__ == "__main__":
    run()
