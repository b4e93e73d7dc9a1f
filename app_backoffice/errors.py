# ==============================================================================
# ERRORES DEL SISTEMA
# ==============================================================================
# Los repositorios y la capa de acceso LANZAN estas excepciones.
# Los servicios las capturan y devuelven {'ok': False, 'error': ..., 'code': ...}
# para que ninguna excepción llegue a la interfaz.
# ==============================================================================


class BackofficeError(Exception):
    """Excepción base. `code` identifica el tipo de error para la interfaz."""

    code = 'BackofficeError'
    default_message = 'Error inesperado'

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class StorageUnavailable(BackofficeError):
    """El almacén no pudo abrirse. Las lecturas degradan a lista vacía."""
    code = 'StorageUnavailable'
    default_message = 'El almacenamiento no está disponible'


class WriteError(BackofficeError):
    """Falló una escritura o borrado. No se reintenta automáticamente."""
    code = 'WriteError'
    default_message = 'No se pudo guardar la información'


class PermissionDenied(BackofficeError):
    code = 'PermissionDenied'
    default_message = 'No tienes permiso para realizar esta acción'


class InvalidCredentials(BackofficeError):
    code = 'InvalidCredentials'
    default_message = 'Usuario o contraseña incorrectos'


class DuplicateUsername(BackofficeError):
    code = 'DuplicateUsername'
    default_message = 'El nombre de usuario ya existe'


class ProtectedAccount(BackofficeError):
    """Intento de eliminar o modificar la cuenta 'admin' fija."""
    code = 'ProtectedAccount'
    default_message = 'La cuenta de administrador no puede eliminarse'


class NotFound(BackofficeError):
    code = 'NotFound'
    default_message = 'Registro no encontrado'


class ValidationError(BackofficeError):
    code = 'ValidationError'
    default_message = 'Datos inválidos'


def error_result(exc: BackofficeError) -> dict:
    """Convierte una excepción del sistema en el dict de resultado de los servicios."""
    return {'ok': False, 'error': exc.message, 'code': exc.code}
