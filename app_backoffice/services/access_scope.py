# ==============================================================================
# CAPA DE ACCESO POR PROPIETARIO
# ==============================================================================
# Envuelve al RecordStore aplicando las reglas de visibilidad:
#
#   admin         → ve y modifica todo
#   usuario       → ve registros propios + registros sin dueño
#                   elimina solo registros propios
#   anónimo       → no ve nada, no escribe nada
#
# Los usuarios (colección `users`) son solo para administradores.
#
# Esta capa LANZA PermissionDenied / WriteError; los servicios de dominio las
# capturan y devuelven el dict de resultado.
# ==============================================================================

from typing import Any, Dict, Iterable, List, Optional

from app_backoffice.config import COLLECTION_USERS
from app_backoffice.errors import PermissionDenied, StorageUnavailable
from app_backoffice.models import LEGACY_OWNER_FIELD, OWNER_FIELD, owner_of
from app_backoffice.repositories.interfaces import IRecordStore
from app_backoffice.services.events import ChangeBroadcaster
from app_backoffice.services.session_service import SessionContext


class AccessScope:
    """
    Acceso a colecciones filtrado por la sesión recibida.

    La sesión SIEMPRE llega como argumento; esta clase no conoce
    la sesión "actual" de la aplicación.
    """

    def __init__(self, record_store: IRecordStore, broadcaster: ChangeBroadcaster = None):
        self.record_store = record_store
        self.broadcaster = broadcaster

    # =========================================================================
    # REGLAS
    # =========================================================================

    @staticmethod
    def is_visible(session: SessionContext, record: Dict[str, Any]) -> bool:
        """
        Verifica si un registro es visible para la sesión.

        Args:
            session: Contexto de sesión
            record: Registro a evaluar

        Returns:
            True si es admin, o si el registro no tiene dueño o es suyo
        """
        if not session.is_authenticated:
            return False
        if session.is_admin:
            return True
        owner = owner_of(record)
        return owner is None or owner == session.user_id

    @staticmethod
    def _require_authenticated(session: SessionContext) -> None:
        if not session.is_authenticated:
            raise PermissionDenied('Debes iniciar sesión')

    @staticmethod
    def stamp_owner(record: Dict[str, Any], owner_id: Optional[str]) -> Dict[str, Any]:
        """
        Copia del registro con `ownerUserId` puesto.
        Un dueño existente (también el campo legacy `userId`) no se pisa.
        """
        stamped = dict(record)
        current = owner_of(stamped)
        stamped.pop(LEGACY_OWNER_FIELD, None)
        if current:
            stamped[OWNER_FIELD] = current
        elif owner_id:
            stamped[OWNER_FIELD] = owner_id
        return stamped

    def notify(self, collection: str) -> None:
        if self.broadcaster:
            self.broadcaster.publish(collection)

    # =========================================================================
    # LECTURA
    # =========================================================================

    async def list_visible(self, session: SessionContext, collection: str) -> List[Dict[str, Any]]:
        """
        Registros de la colección visibles para la sesión.
        Si el almacén no está disponible se devuelve lista vacía.
        """
        if not session.is_authenticated:
            return []
        try:
            records = await self.record_store.get_all(collection)
        except StorageUnavailable as e:
            print(f"[STORAGE ERROR] {collection}: {e.message}")
            return []
        if session.is_admin:
            return records
        return [r for r in records if self.is_visible(session, r)]

    async def get_visible(self, session: SessionContext, collection: str,
                          record_id: Any) -> Optional[Dict[str, Any]]:
        """Un registro por id, o None si no existe o no es visible."""
        if not session.is_authenticated:
            return None
        try:
            record = await self.record_store.get(collection, record_id)
        except StorageUnavailable as e:
            print(f"[STORAGE ERROR] {collection}/{record_id}: {e.message}")
            return None
        if record is None or not self.is_visible(session, record):
            return None
        return record

    async def list_all_users(self, session: SessionContext) -> List[Dict[str, Any]]:
        """Usuarios registrados. Lista vacía (no error) si no es admin."""
        if not session.is_admin:
            return []
        try:
            return await self.record_store.get_all(COLLECTION_USERS)
        except StorageUnavailable as e:
            print(f"[STORAGE ERROR] {COLLECTION_USERS}: {e.message}")
            return []

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    async def _check_existing_owner(self, session: SessionContext, collection: str,
                                    record: Dict[str, Any]) -> Optional[str]:
        """
        Dueño del registro ya guardado con el mismo id.

        Raises:
            PermissionDenied: Si un usuario normal intenta sobrescribir
                un registro de otro usuario
        """
        if record.get('id') in (None, ''):
            return None
        existing = await self.record_store.get(collection, record['id'])
        if existing is None:
            return None
        existing_owner = owner_of(existing)
        if not session.is_admin and existing_owner and existing_owner != session.user_id:
            raise PermissionDenied('No puedes modificar registros de otro usuario')
        return existing_owner

    async def save_owned(self, session: SessionContext, collection: str,
                         record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Guarda un registro marcándolo con el dueño si no lo tiene.

        Orden del dueño: el del registro → el ya guardado → el de la sesión.

        Returns:
            El registro tal como se guardó

        Raises:
            PermissionDenied: Sesión anónima o registro ajeno
            WriteError: Si la escritura falla
        """
        self._require_authenticated(session)
        existing_owner = await self._check_existing_owner(session, collection, record)
        stamped = self.stamp_owner(record, existing_owner or session.user_id)
        saved = await self.record_store.put(collection, stamped)
        self.notify(collection)
        return saved

    async def save_many_owned(self, session: SessionContext, collection: str,
                              records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Como save_owned, para varios registros en una sola transacción."""
        self._require_authenticated(session)
        stamped = []
        for record in records:
            existing_owner = await self._check_existing_owner(session, collection, record)
            stamped.append(self.stamp_owner(record, existing_owner or session.user_id))
        saved = await self.record_store.put_many(collection, stamped)
        self.notify(collection)
        return saved

    async def delete_owned(self, session: SessionContext, collection: str, record_id: Any) -> None:
        """
        Elimina un registro.

        Raises:
            PermissionDenied: Si no es admin y el registro no es suyo
                (también si el registro no existe)
            WriteError: Si el borrado falla
        """
        self._require_authenticated(session)
        if not session.is_admin:
            record = await self.record_store.get(collection, record_id)
            if record is None or owner_of(record) != session.user_id:
                raise PermissionDenied('Solo puedes eliminar tus propios registros')
        await self.record_store.delete(collection, record_id)
        self.notify(collection)
