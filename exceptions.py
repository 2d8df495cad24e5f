"""
=============================================================================
EXCEPTIONS.PY — Errores de la API
=============================================================================
Los servicios lanzan estas excepciones y main.py las convierte en
{"error": "..."} con su código HTTP. Ningún error se reintenta aquí:
el cliente vuelve a enviar la petición si quiere.
"""

from fastapi import status


class AppException(Exception):
    """Excepción base de la aplicación"""
    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


class UnauthorizedError(AppException):
    """Falta la identidad o no es válida"""
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, detail)


class NotFoundError(AppException):
    """No existe, o no pertenece al usuario"""
    def __init__(self, detail: str = "Not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, detail)


class ConflictError(AppException):
    """Choca con un estado ya existente (el contrato HTTP lo expone como 400)"""
    def __init__(self, detail: str = "Conflict"):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail)


class AlreadyEnrolledError(ConflictError):
    def __init__(self, detail: str = "You already have an active instance of this challenge"):
        super().__init__(detail)


class DuplicateCheckinError(ConflictError):
    def __init__(self, detail: str = "Already checked in for this date"):
        super().__init__(detail)


class ValidationError(AppException):
    """Cuerpo de la petición mal formado"""
    def __init__(self, detail: str = "Invalid request"):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail)


class DatabaseError(AppException):
    """Fallo de la base de datos"""
    def __init__(self, detail: str = "Database error"):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, detail)
