"""
=============================================================================
CATALOG.PY — Catálogo inicial de desafíos
=============================================================================
Desafíos de finanzas personales para estudiantes y recién graduados.
Se insertan al arrancar si la tabla está vacía.
"""

import logging
from sqlalchemy.orm import Session

from models import Challenge

logger = logging.getLogger("plounix.catalog")


DEFAULT_CHALLENGES = [
    # ── Estudiantes ──
    {
        "title": "₱100 Daily Challenge",
        "description": "Survive on ₱100 daily for food and drinks. Perfect for students wanting to stretch their allowance.",
        "category": "budgeting", "difficulty": "easy", "icon": "☕",
        "challenge_type": "streak", "duration_days": 7, "required_consecutive_days": 7,
        "points_full": 70, "max_missed_days": 0,
        "failure_condition": "Spending more than ₱100 on any day breaks the streak",
        "estimated_time_commitment": "5 minutes a day",
        "tips": [
            "Cook rice at home, buy ulam only",
            "Bring water bottle instead of buying drinks",
            "Look for student meal deals",
            "Share food costs with classmates",
        ],
    },
    {
        "title": "Load Smart Challenge",
        "description": "Reduce your mobile load expenses by 50% using WiFi, free apps, and smart usage.",
        "category": "savings", "difficulty": "easy", "icon": "📶",
        "challenge_type": "flexible", "duration_days": 14, "required_checkins": 10,
        "points_full": 100, "max_missed_days": 4,
        "failure_condition": "Fewer than 10 load-free days within two weeks",
        "estimated_time_commitment": "2 minutes a day",
        "tips": [
            "Use free WiFi whenever possible",
            "Switch to messaging apps (Messenger, Viber)",
            "Download content when on WiFi",
            "Use data-saving modes",
        ],
    },
    {
        "title": "Transport Budget Week",
        "description": "Stick to ₱200 weekly transport budget using jeepneys, walking, and carpooling.",
        "category": "budgeting", "difficulty": "medium", "icon": "🚌",
        "challenge_type": "time_bound", "duration_days": 7, "required_checkins": 5,
        "points_full": 80, "max_missed_days": 2,
        "failure_condition": "Transport spending above ₱200 for the week",
        "estimated_time_commitment": "5 minutes a day",
        "tips": [
            "Walk for short distances (1-2 stops)",
            "Use jeepneys instead of Grab",
            "Organize carpool with classmates",
            "Combine errands into one trip",
        ],
    },
    # ── Recién graduados ──
    {
        "title": "First Salary Smart Split",
        "description": "Apply 50-30-20 rule to your first salary: 50% needs, 30% wants, 20% savings.",
        "category": "budgeting", "difficulty": "medium", "icon": "🐷",
        "challenge_type": "time_bound", "duration_days": 30, "required_checkins": 4,
        "points_full": 150, "max_missed_days": 0,
        "failure_condition": "Missing a weekly budget review",
        "estimated_time_commitment": "30 minutes a week",
        "tips": [
            "Set up automatic savings transfer",
            "Track every expense for first month",
            "Resist lifestyle inflation temptations",
            "Celebrate small wins",
        ],
    },
    {
        "title": "₱30,000 Emergency Fund Race",
        "description": "Build your first emergency fund (3 months expenses) as fast as possible.",
        "category": "savings", "difficulty": "hard", "icon": "🏆",
        "challenge_type": "time_bound", "duration_days": 180, "required_checkins": 6,
        "points_full": 500, "max_missed_days": 0,
        "failure_condition": "Fund below ₱30,000 after six months",
        "estimated_time_commitment": "1 hour a month",
        "requirements": {"target_amount": 30000},
        "tips": [
            "Start with ₱5,000 monthly savings",
            "Use high-yield digital banks (CIMB, Tonik)",
            "Save bonus/13th month pay",
            "Side hustle for extra income",
        ],
    },
    {
        "title": "Investment Newbie Challenge",
        "description": "Start investing ₱1,000 monthly in mutual funds for 6 months.",
        "category": "investing", "difficulty": "medium", "icon": "📈",
        "challenge_type": "time_bound", "duration_days": 180, "required_checkins": 6,
        "points_full": 300, "max_missed_days": 0,
        "failure_condition": "Skipping a monthly investment",
        "estimated_time_commitment": "30 minutes a month",
        "requirements": {"target_amount": 6000},
        "tips": [
            "Start with balanced mutual funds",
            "Use BPI, BDO, or COL Financial",
            "Don't check daily - invest for long term",
            "Learn about different fund types",
        ],
    },
    # ── Populares ──
    {
        "title": "No-Spend Weekend",
        "description": "Enjoy weekends without spending money on entertainment or food.",
        "category": "discipline", "difficulty": "easy", "icon": "🎯",
        "challenge_type": "streak", "duration_days": 2, "required_consecutive_days": 2,
        "points_full": 40, "max_missed_days": 0,
        "failure_condition": "Any non-essential purchase during the weekend",
        "estimated_time_commitment": "The whole weekend",
        "tips": [
            "Cook meals at home",
            "Find free activities (parks, free events)",
            "Have movie nights at home",
            "Exercise outdoors instead of gym",
        ],
    },
    {
        "title": "Lutong Bahay Week",
        "description": "Cook all your meals at home for one week. No food delivery or eating out.",
        "category": "spending", "difficulty": "medium", "icon": "🍳",
        "challenge_type": "streak", "duration_days": 7, "required_consecutive_days": 7,
        "points_full": 100, "max_missed_days": 0,
        "failure_condition": "Ordering delivery or eating out",
        "estimated_time_commitment": "1 hour a day",
        "tips": [
            "Meal prep on Sunday",
            "Buy groceries in bulk",
            "Learn 3-4 easy recipes",
            "Bring packed lunch to work/school",
        ],
    },
]


def seed_challenges(db: Session) -> int:
    """Inserta el catálogo por defecto si la tabla está vacía. Devuelve cuántos insertó."""
    if db.query(Challenge).count() > 0:
        return 0

    for definition in DEFAULT_CHALLENGES:
        db.add(Challenge(**definition))
    db.commit()

    logger.info(f"✅ {len(DEFAULT_CHALLENGES)} desafíos insertados en el catálogo")
    return len(DEFAULT_CHALLENGES)
