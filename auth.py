"""
=============================================================================
AUTH.PY — Identidad del usuario
=============================================================================
Este servicio NO gestiona cuentas ni contraseñas. Confía en un token JWT
firmado por el proveedor de identidad y solo extrae de él el user_id.

Flujo:
  1. El cliente envía "Authorization: Bearer <token>"
  2. Verificamos la firma y la caducidad
  3. El "sub" del token es el user_id que usan los desafíos
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from exceptions import UnauthorizedError

# ─────────────────────────────────────────────────────────────────────────────
# CONFIGURACIÓN
# ─────────────────────────────────────────────────────────────────────────────

SECRET_KEY = os.getenv("SECRET_KEY", "plounix-dev-secret-key-cambiar-en-produccion")
# SECRET_KEY → la misma clave con la que el proveedor de identidad firma

ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

ACCESS_TOKEN_EXPIRE_DAYS = 30


# ─────────────────────────────────────────────────────────────────────────────
# TOKENS JWT
# ─────────────────────────────────────────────────────────────────────────────

def create_access_token(user_id: str, expires_in: Optional[timedelta] = None) -> str:
    """
    Crea un token JWT para un user_id.
    En producción los emite el proveedor de identidad; esto es para
    herramientas internas y tests.
    """
    expire = datetime.now(timezone.utc) + (expires_in or timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS))
    to_encode = {
        "sub": str(user_id),
        "exp": expire
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decodifica un JWT. Si es inválido o ha caducado, devuelve None."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


# ─────────────────────────────────────────────────────────────────────────────
# DEPENDENCIA: USUARIO ACTUAL
# ─────────────────────────────────────────────────────────────────────────────
# auto_error=False → sin header no queremos el 403 de FastAPI sino nuestro 401

security = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Devuelve el user_id del token.

      @app.post("/challenges/{id}/join")
      def join(user_id: str = Depends(get_current_user_id)):
          ...
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError()

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise UnauthorizedError()

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError()

    return str(user_id)
