# ==============================================================================
# SERVICIO DE MIGRACIÓN (almacén plano → almacén de registros)
# ==============================================================================
# Se ejecuta UNA vez por carpeta de datos:
#
#   1. Si `migrationComplete` == "true" → no hace nada
#   2. Lee cada colección legacy (products, orders, users, notifications)
#   3. Marca con dueño los registros sin dueño (si hay sesión); los usuarios NO
#   4. put_many por colección
#   5. Migra `userSettings` al registro único de configuración
#   6. Marca `migrationComplete` = "true"
#
# Ante cualquier error se aborta la ejecución SIN marcar el flag: se reintenta
# en el próximo arranque. Repetir un put es seguro (upsert por id).
# ==============================================================================

import asyncio
from typing import Any, Dict, List

from app_backoffice.config import (
    COLLECTION_SETTINGS,
    COLLECTION_USERS,
    KEY_MIGRATION_COMPLETE,
    LEGACY_LIST_COLLECTIONS,
    SETTINGS_RECORD_ID,
    VERBOSE,
)
from app_backoffice.errors import BackofficeError
from app_backoffice.models import Settings
from app_backoffice.repositories.interfaces import IKeyValueRepository, ILegacyStore, IRecordStore
from app_backoffice.services.access_scope import AccessScope
from app_backoffice.services.session_service import ANONYMOUS, SessionContext


class MigrationService:
    """
    Copia única de los datos legacy al almacén de registros.

    Uso:
        result = await migration_service.check_and_migrate(session)
        if not result['ok']:
            # la app sigue funcionando; se reintenta en el próximo arranque
            ...
    """

    def __init__(self, kv_repo: IKeyValueRepository, legacy_store: ILegacyStore,
                 record_store: IRecordStore):
        self.kv_repo = kv_repo
        self.legacy_store = legacy_store
        self.record_store = record_store
        self._lock = None
        self._lock_loop = None

    def _get_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    def is_complete(self) -> bool:
        return self.kv_repo.get_item(KEY_MIGRATION_COMPLETE) == 'true'

    def _mark_complete(self) -> None:
        self.kv_repo.set_item(KEY_MIGRATION_COMPLETE, 'true')

    # =========================================================================
    # PREPARACIÓN DE REGISTROS
    # =========================================================================

    @staticmethod
    def _prepare_owned(records: List[Dict[str, Any]], owner_id) -> List[Dict[str, Any]]:
        """Normaliza `userId` → `ownerUserId` y marca los que no tienen dueño."""
        prepared = []
        for record in records:
            if not isinstance(record, dict) or record.get('id') in (None, ''):
                print(f"[MIGRACIÓN] Registro sin id omitido: {record!r}")
                continue
            prepared.append(AccessScope.stamp_owner(record, owner_id))
        return prepared

    async def _prepare_users(self, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Usuarios sin marca de dueño. Se omite un usuario legacy si su
        username ya existe en el almacén con otro id.
        """
        taken = {u.get('username'): str(u.get('id'))
                 for u in await self.record_store.get_all(COLLECTION_USERS)}
        prepared = []
        for record in records:
            if not isinstance(record, dict) or record.get('id') in (None, ''):
                print(f"[MIGRACIÓN] Usuario sin id omitido: {record!r}")
                continue
            username = record.get('username')
            existing_id = taken.get(username)
            if existing_id is not None and existing_id != str(record['id']):
                print(f"[MIGRACIÓN] Usuario '{username}' ya existe, se omite")
                continue
            taken[username] = str(record['id'])
            prepared.append(dict(record))
        return prepared

    async def _migrate_settings(self) -> int:
        legacy = self.legacy_store.read_settings()
        if legacy is None:
            return 0
        if await self.record_store.get(COLLECTION_SETTINGS, SETTINGS_RECORD_ID) is not None:
            return 0
        await self.record_store.put(COLLECTION_SETTINGS, Settings.from_dict(legacy).to_dict())
        return 1

    # =========================================================================
    # MIGRACIÓN
    # =========================================================================

    async def check_and_migrate(self, session: SessionContext = ANONYMOUS) -> Dict[str, Any]:
        """
        Ejecuta la migración si todavía no se completó.

        Llamadas concurrentes comparten una sola ejecución: la segunda espera
        el lock y encuentra el flag ya marcado.

        Args:
            session: Sesión actual; su id se usa como dueño de los registros
                legacy sin dueño (anónima → quedan sin dueño)

        Returns:
            Dict {'ok': bool, 'skipped': bool, 'migrated': {colección: n}, 'error': str}
        """
        if self.is_complete():
            return {'ok': True, 'skipped': True, 'migrated': {}}

        async with self._get_lock():
            if self.is_complete():
                return {'ok': True, 'skipped': True, 'migrated': {}}
            return await self._run(session)

    async def _run(self, session: SessionContext) -> Dict[str, Any]:
        migrated: Dict[str, int] = {}
        try:
            for collection in LEGACY_LIST_COLLECTIONS:
                if not self.legacy_store.has_collection(collection):
                    continue
                records = self.legacy_store.read_collection(collection)
                if collection == COLLECTION_USERS:
                    prepared = await self._prepare_users(records)
                else:
                    prepared = self._prepare_owned(records, session.user_id)
                await self.record_store.put_many(collection, prepared)
                migrated[collection] = len(prepared)
                if VERBOSE:
                    print(f"[MIGRACIÓN] {collection}: {len(prepared)} registros")

            migrated[COLLECTION_SETTINGS] = await self._migrate_settings()
        except (BackofficeError, ValueError, OSError) as e:
            message = getattr(e, 'message', None) or str(e)
            print(f"[MIGRACIÓN ERROR] {type(e).__name__}: {message}. Se reintentará en el próximo arranque")
            return {'ok': False, 'skipped': False, 'migrated': migrated, 'error': message}

        self._mark_complete()
        print(f"[MIGRACIÓN] Completada: {migrated}")
        return {'ok': True, 'skipped': False, 'migrated': migrated}
