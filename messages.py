"""
=============================================================================
MESSAGES.PY — Mensajes para el usuario
=============================================================================
Convierte el resultado de unirse / hacer check-in / abandonar en el texto
que ve el usuario. Sin estado, sin BD.
"""

from models import ChallengeType


def join_message(title: str) -> str:
    return f'You\'ve joined "{title}"! Good luck! 🎯'


def checkin_message(user_challenge, challenge_type: str, is_complete: bool) -> str:
    if is_complete:
        return f"🎉 Challenge complete! You earned {user_challenge.points_earned} points!"

    if challenge_type == ChallengeType.streak.value:
        return (
            f"🔥 Progress logged! {user_challenge.current_streak}/"
            f"{user_challenge.checkins_required} days in a row"
        )

    return (
        f"✅ Progress logged! {user_challenge.checkins_completed}/"
        f"{user_challenge.checkins_required} complete"
    )


def abandon_message(partial_points: int) -> str:
    if partial_points > 0:
        return f"Challenge abandoned. You earned {partial_points} points for your progress!"
    return "Challenge abandoned. Try again when you're ready!"


def expiry_message(title: str, partial_points: int) -> str:
    """Texto del log / aviso cuando vence el plazo sin completar"""
    if partial_points > 0:
        return f'Time\'s up on "{title}". You earned {partial_points} points for your progress!'
    return f'Time\'s up on "{title}". Try again when you\'re ready!'
