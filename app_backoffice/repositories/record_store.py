# ==============================================================================
# ALMACÉN TRANSACCIONAL DE REGISTROS (sqlite)
# ==============================================================================
# Persistencia asíncrona sobre cinco colecciones con nombre, indexadas por `id`.
# Cada colección es una tabla (id TEXT PRIMARY KEY, data TEXT JSON).
#
# CONCURRENCIA:
# - Una sola conexión; cada operación corre en un hilo (asyncio.to_thread)
#   serializada por un asyncio.Lock → cada put/delete/get_all es atómico.
# - NO hay bloqueo entre operaciones: dos lecturas-modificación-escritura de
#   la misma fila pueden intercalarse en sus puntos de await (lost update).
#
# APERTURA:
# - Perezosa, en el primer acceso.
# - CREATE TABLE IF NOT EXISTS → crear el esquema dos veces no hace nada.
# - Si la apertura falla se lanza StorageUnavailable y se reintenta en la
#   siguiente llamada.
# ==============================================================================

import asyncio
import json
import os
import sqlite3
from typing import Any, Dict, Iterable, List, Optional

from app_backoffice.config import COLLECTIONS
from app_backoffice.errors import StorageUnavailable, WriteError
from app_backoffice.performance_logger import profile_function


class RecordStore:
    """
    Almacén transaccional de registros.

    Uso:
        store = RecordStore('/ruta/records.sqlite3')
        await store.put('products', {'id': 'p1', 'name': 'Camiseta'})
        products = await store.get_all('products')
    """

    def __init__(self, db_path: str, collections: Iterable[str] = COLLECTIONS):
        """
        Args:
            db_path: Ruta del archivo sqlite
            collections: Colecciones a crear en la primera apertura
        """
        self.db_path = db_path
        self.collections = tuple(collections)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop = None

    # =========================================================================
    # APERTURA Y ESQUEMA
    # =========================================================================

    def _get_lock(self) -> asyncio.Lock:
        """Un lock por event loop (los tests usan un loop nuevo por asyncio.run)."""
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    def _init_tables(self, conn: sqlite3.Connection) -> None:
        """Crea las tablas si no existen todavía."""
        with conn:
            for collection in self.collections:
                conn.execute(
                    f'CREATE TABLE IF NOT EXISTS "{collection}" ('
                    ' id TEXT PRIMARY KEY,'
                    ' data TEXT NOT NULL'
                    ')'
                )

    def _open_sync(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn
        try:
            directory = os.path.dirname(self.db_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
        except (OSError, sqlite3.Error) as e:
            raise StorageUnavailable(f"No se pudo abrir el almacén: {e}") from e
        try:
            self._init_tables(conn)
        except sqlite3.Error as e:
            conn.close()
            raise StorageUnavailable(f"No se pudo preparar el almacén: {e}") from e
        self._conn = conn
        return conn

    async def open(self) -> None:
        """Abre el almacén (opcional: cualquier operación lo abre sola)."""
        async with self._get_lock():
            await asyncio.to_thread(self._open_sync)

    async def close(self) -> None:
        async with self._get_lock():
            if self._conn is not None:
                conn, self._conn = self._conn, None
                await asyncio.to_thread(conn.close)

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def _check_collection(self, collection: str) -> None:
        if collection not in self.collections:
            raise ValueError(f"Colección desconocida: {collection}")

    @staticmethod
    def _record_key(record: Dict[str, Any]) -> str:
        if not isinstance(record, dict) or record.get('id') in (None, ''):
            raise WriteError("El registro no tiene 'id'")
        return str(record['id'])

    @staticmethod
    def _serialize(record: Dict[str, Any]) -> str:
        try:
            return json.dumps(record, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise WriteError(f"El registro no se puede serializar: {e}") from e

    # =========================================================================
    # LECTURA
    # =========================================================================

    def _get_all_sync(self, collection: str) -> List[Dict[str, Any]]:
        conn = self._open_sync()
        try:
            rows = conn.execute(f'SELECT data FROM "{collection}" ORDER BY rowid').fetchall()
        except sqlite3.Error as e:
            raise StorageUnavailable(f"No se pudo leer '{collection}': {e}") from e
        return [json.loads(row[0]) for row in rows]

    def _get_sync(self, collection: str, record_id: Any) -> Optional[Dict[str, Any]]:
        conn = self._open_sync()
        try:
            row = conn.execute(
                f'SELECT data FROM "{collection}" WHERE id = ?', (str(record_id),)
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageUnavailable(f"No se pudo leer '{collection}': {e}") from e
        return json.loads(row[0]) if row else None

    @profile_function(name="RecordStore.get_all")
    async def get_all(self, collection: str) -> List[Dict[str, Any]]:
        """
        Obtiene todos los registros de una colección.

        Raises:
            StorageUnavailable: Si el almacén no se puede abrir o leer
        """
        self._check_collection(collection)
        async with self._get_lock():
            return await asyncio.to_thread(self._get_all_sync, collection)

    @profile_function(name="RecordStore.get")
    async def get(self, collection: str, record_id: Any) -> Optional[Dict[str, Any]]:
        """Obtiene un registro por id, o None si no existe."""
        self._check_collection(collection)
        async with self._get_lock():
            return await asyncio.to_thread(self._get_sync, collection, record_id)

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    def _put_many_sync(self, collection: str, records: List[Dict[str, Any]]) -> None:
        rows = [(self._record_key(r), self._serialize(r)) for r in records]
        conn = self._open_sync()
        try:
            # Una sola transacción: commit de todo o rollback de todo
            with conn:
                conn.executemany(
                    f'INSERT INTO "{collection}" (id, data) VALUES (?, ?) '
                    'ON CONFLICT(id) DO UPDATE SET data = excluded.data',
                    rows,
                )
        except sqlite3.Error as e:
            raise WriteError(f"No se pudo guardar en '{collection}': {e}") from e

    def _delete_sync(self, collection: str, record_id: Any) -> None:
        conn = self._open_sync()
        try:
            with conn:
                conn.execute(f'DELETE FROM "{collection}" WHERE id = ?', (str(record_id),))
        except sqlite3.Error as e:
            raise WriteError(f"No se pudo eliminar de '{collection}': {e}") from e

    @profile_function(name="RecordStore.put")
    async def put(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Inserta o reemplaza un registro por su `id`.

        Returns:
            El registro guardado

        Raises:
            WriteError: Si la transacción falla o el registro no tiene id
        """
        self._check_collection(collection)
        async with self._get_lock():
            await asyncio.to_thread(self._put_many_sync, collection, [record])
        return record

    @profile_function(name="RecordStore.put_many")
    async def put_many(self, collection: str, records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Inserta o reemplaza varios registros en UNA transacción.
        Si cualquiera falla, no se guarda ninguno.
        """
        self._check_collection(collection)
        records = list(records)
        if not records:
            return []
        async with self._get_lock():
            await asyncio.to_thread(self._put_many_sync, collection, records)
        return records

    @profile_function(name="RecordStore.delete")
    async def delete(self, collection: str, record_id: Any) -> None:
        """Elimina un registro. Eliminar un id inexistente no es un error."""
        self._check_collection(collection)
        async with self._get_lock():
            await asyncio.to_thread(self._delete_sync, collection, record_id)
