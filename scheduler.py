"""
=============================================================================
SCHEDULER.PY — Barrido de desafíos vencidos
=============================================================================
Las inscripciones activas cuyo plazo venció sin llegar al 100% pasan a
"failed" con puntos parciales. Nadie las toca mientras el usuario no
vuelva, así que un job de APScheduler las revisa cada X minutos.

Además, check-in / abandon / "mis desafíos" revisan el plazo de la
inscripción que tocan, así que entre barridos no se cuela nada.
"""

import logging
import os
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
import pytz

from database import SessionLocal, session_scope
from challenges import expire_overdue_challenges

logger = logging.getLogger("plounix.scheduler")

EXPIRY_SWEEP_MINUTES = int(os.getenv("EXPIRY_SWEEP_MINUTES", "15"))

scheduler: AsyncIOScheduler = None


def sweep_expired_challenges(now: Optional[datetime] = None) -> int:
    """
    Abre su propia sesión (fuera de una petición HTTP), falla las
    inscripciones vencidas y devuelve cuántas cambió.
    """
    try:
        with session_scope(SessionLocal) as db:
            expired = expire_overdue_challenges(db, now)
    except Exception as e:
        logger.error(f"❌ Error en el barrido de plazos: {e}")
        return 0

    if expired:
        logger.info(f"⌛ Barrido de plazos: {expired} desafíos marcados como fallidos")
    return expired


def create_scheduler() -> AsyncIOScheduler:
    """Crea el scheduler con el barrido de plazos"""
    global scheduler

    scheduler = AsyncIOScheduler(timezone=pytz.utc)

    scheduler.add_job(
        sweep_expired_challenges,
        IntervalTrigger(minutes=EXPIRY_SWEEP_MINUTES),
        id="expire_overdue_challenges",
        name="Fallar desafíos con el plazo vencido",
        replace_existing=True
    )

    logger.info(f"⏰ Scheduler configurado: barrido de plazos cada {EXPIRY_SWEEP_MINUTES} min")
    return scheduler


def start_scheduler():
    global scheduler
    if scheduler and not scheduler.running:
        scheduler.start()
        logger.info("⏰ Scheduler arrancado")


def stop_scheduler():
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("⏰ Scheduler parado")
