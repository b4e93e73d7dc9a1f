# ==============================================================================
# SERVICIO DE SESIÓN
# ==============================================================================
# Máquina de estados de la sesión actual:
#
#   anonymous ──login──► authenticated-admin / authenticated-user
#       ▲                          │
#       └──────────logout──────────┘
#
# La identidad se persiste en la clave `currentUser` del almacén plano para
# sobrevivir a un reinicio. Los servicios NO leen esa clave: reciben un
# SessionContext explícito en cada llamada.
# ==============================================================================

import json
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from app_backoffice.config import KEY_CURRENT_USER, VERBOSE
from app_backoffice.models import SessionIdentity
from app_backoffice.repositories.interfaces import IKeyValueRepository
from app_backoffice.services.events import SESSION_TOPIC, ChangeBroadcaster


class SessionState(str, Enum):
    ANONYMOUS = 'anonymous'
    AUTHENTICATED_ADMIN = 'authenticated-admin'
    AUTHENTICATED_USER = 'authenticated-user'


@dataclass(frozen=True)
class SessionContext:
    """
    Contexto de sesión que se pasa a cada operación de servicio.

    Attributes:
        identity: Identidad autenticada, o None si es anónima
    """
    identity: Optional[SessionIdentity] = None

    @property
    def state(self) -> SessionState:
        if self.identity is None:
            return SessionState.ANONYMOUS
        if self.identity.is_admin:
            return SessionState.AUTHENTICATED_ADMIN
        return SessionState.AUTHENTICATED_USER

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    @property
    def is_admin(self) -> bool:
        return self.identity is not None and self.identity.is_admin

    @property
    def user_id(self) -> Optional[str]:
        return self.identity.id if self.identity else None

    @classmethod
    def for_identity(cls, identity: Optional[SessionIdentity]) -> 'SessionContext':
        return cls(identity=identity)


ANONYMOUS = SessionContext()


class SessionService:
    """
    Mantiene la sesión actual y su copia persistida.

    Uso:
        session = session_service.restore()
        ...
        session_service.end()   # logout
    """

    def __init__(self, kv_repo: IKeyValueRepository, broadcaster: ChangeBroadcaster = None):
        """
        Args:
            kv_repo: Almacén plano donde vive `currentUser`
            broadcaster: Avisos de cambio (opcional)
        """
        self.kv_repo = kv_repo
        self.broadcaster = broadcaster or ChangeBroadcaster()
        self._current = ANONYMOUS

    @property
    def current(self) -> SessionContext:
        return self._current

    @property
    def state(self) -> SessionState:
        return self._current.state

    def restore(self) -> SessionContext:
        """
        Reconstruye la sesión persistida tras un reinicio.
        Un blob corrupto se descarta y la sesión queda anónima.

        Returns:
            El contexto restaurado
        """
        try:
            blob = self.kv_repo.get_json(KEY_CURRENT_USER)
        except ValueError:
            print("[SESIÓN] Identidad persistida corrupta, se descarta")
            self.kv_repo.remove_item(KEY_CURRENT_USER)
            blob = None

        if isinstance(blob, dict) and blob.get('id'):
            self._current = SessionContext.for_identity(SessionIdentity.from_dict(blob))
        else:
            self._current = ANONYMOUS

        if VERBOSE:
            print(f"[SESIÓN] Restaurada: {self._current.state.value}")
        return self._current

    def begin(self, identity: SessionIdentity) -> SessionContext:
        """
        Pasa al estado autenticado y persiste la identidad.

        Args:
            identity: Identidad del usuario que inicia sesión
        """
        self.kv_repo.set_item(KEY_CURRENT_USER, json.dumps(identity.to_dict()))
        self._current = SessionContext.for_identity(identity)
        self.broadcaster.publish(SESSION_TOPIC)
        return self._current

    def end(self) -> SessionContext:
        """
        Cierra la sesión: borra la identidad persistida y vuelve a anónimo
        en la misma llamada síncrona, antes de avisar a los observadores.
        """
        self.kv_repo.remove_item(KEY_CURRENT_USER)
        self._current = ANONYMOUS
        self.broadcaster.publish(SESSION_TOPIC)
        return self._current

    def subscribe(self, callback: Callable[[str], None]) -> Callable[[], None]:
        return self.broadcaster.subscribe(callback)
