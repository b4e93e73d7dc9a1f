# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS DEL BACK-OFFICE
# ==============================================================================
# Arma una sola vez los dos almacenes (local_storage.json y records.sqlite3)
# y los servicios que los usan. Cada carpeta de datos tiene su contenedor;
# los tests crean uno por carpeta temporal.
#
# ARRANQUE (await container.startup()):
#   1. Abrir el almacén de registros
#   2. Restaurar la sesión persistida
#   3. Migrar datos legacy (una sola vez, con el dueño de esa sesión)
#   4. Crear la cuenta 'admin' si no existe
# ==============================================================================

import os
from typing import Any, Dict, Optional

from app_backoffice.config import DATA_DIR, LOCAL_STORAGE_FILE, RECORD_STORE_FILE
from app_backoffice.errors import StorageUnavailable
from app_backoffice.performance_logger import write_stats_report

# ═══════════════════════════════════════════════════════════════════════════════
# REPOSITORIOS - Capa de persistencia
# ═══════════════════════════════════════════════════════════════════════════════
from app_backoffice.repositories import (
    KeyValueRepository,
    LegacyStoreAdapter,
    RecordStore,
)

# ═══════════════════════════════════════════════════════════════════════════════
# SERVICIOS - Capa de lógica de negocio
# ═══════════════════════════════════════════════════════════════════════════════
from app_backoffice.services import (
    AccessScope,
    ChangeBroadcaster,
    MigrationService,
    NotificationService,
    OrderService,
    ProductService,
    SessionService,
    SettingsService,
    StatsService,
    UserService,
)


class AppContainer:
    """
    Dueño de los almacenes y servicios del back-office (singleton).
    Cada dependencia se crea la primera vez que se pide.

    Uso:
        container = get_container('/ruta/datos')
        await container.startup()
        result = await container.user_service.login('admin', 'password')
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, data_dir: str = None):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, data_dir: str = None):
        """
        Inicializa el contenedor.

        Args:
            data_dir: Carpeta de datos (local_storage.json y records.sqlite3)
        """
        if self._initialized:
            return

        self._data_dir = data_dir or DATA_DIR
        self._reset_slots()
        self._initialized = True

    def _reset_slots(self) -> None:
        # Repositorios (lazy loading)
        self._kv_repo: Optional[KeyValueRepository] = None
        self._legacy_store: Optional[LegacyStoreAdapter] = None
        self._record_store: Optional[RecordStore] = None

        # Servicios (lazy loading)
        self._broadcaster: Optional[ChangeBroadcaster] = None
        self._session_service: Optional[SessionService] = None
        self._access_scope: Optional[AccessScope] = None
        self._user_service: Optional[UserService] = None
        self._migration_service: Optional[MigrationService] = None
        self._product_service: Optional[ProductService] = None
        self._notification_service: Optional[NotificationService] = None
        self._order_service: Optional[OrderService] = None
        self._settings_service: Optional[SettingsService] = None
        self._stats_service: Optional[StatsService] = None

    @property
    def data_dir(self) -> str:
        return self._data_dir

    # =========================================================================
    # REPOSITORIOS
    # =========================================================================

    @property
    def kv_repo(self) -> KeyValueRepository:
        """Almacén plano (singleton)."""
        if self._kv_repo is None:
            self._kv_repo = KeyValueRepository(os.path.join(self._data_dir, LOCAL_STORAGE_FILE))
        return self._kv_repo

    @property
    def legacy_store(self) -> LegacyStoreAdapter:
        if self._legacy_store is None:
            self._legacy_store = LegacyStoreAdapter(self.kv_repo)
        return self._legacy_store

    @property
    def record_store(self) -> RecordStore:
        """Almacén de registros (singleton)."""
        if self._record_store is None:
            self._record_store = RecordStore(os.path.join(self._data_dir, RECORD_STORE_FILE))
        return self._record_store

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def broadcaster(self) -> ChangeBroadcaster:
        if self._broadcaster is None:
            self._broadcaster = ChangeBroadcaster()
        return self._broadcaster

    @property
    def session_service(self) -> SessionService:
        """Servicio de sesión (singleton)."""
        if self._session_service is None:
            self._session_service = SessionService(self.kv_repo, self.broadcaster)
        return self._session_service

    @property
    def access_scope(self) -> AccessScope:
        if self._access_scope is None:
            self._access_scope = AccessScope(self.record_store, self.broadcaster)
        return self._access_scope

    @property
    def user_service(self) -> UserService:
        """Servicio de usuarios (singleton)."""
        if self._user_service is None:
            self._user_service = UserService(
                self.record_store,
                self.session_service,
                self.access_scope
            )
        return self._user_service

    @property
    def migration_service(self) -> MigrationService:
        """Servicio de migración (singleton)."""
        if self._migration_service is None:
            self._migration_service = MigrationService(
                self.kv_repo,
                self.legacy_store,
                self.record_store
            )
        return self._migration_service

    @property
    def product_service(self) -> ProductService:
        """Servicio de productos (singleton)."""
        if self._product_service is None:
            self._product_service = ProductService(self.access_scope, self.record_store)
        return self._product_service

    @property
    def notification_service(self) -> NotificationService:
        """Servicio de notificaciones (singleton)."""
        if self._notification_service is None:
            self._notification_service = NotificationService(self.access_scope, self.record_store)
        return self._notification_service

    @property
    def order_service(self) -> OrderService:
        """Servicio de pedidos (singleton)."""
        if self._order_service is None:
            self._order_service = OrderService(
                self.access_scope,
                self.product_service,
                self.notification_service
            )
        return self._order_service

    @property
    def settings_service(self) -> SettingsService:
        """Servicio de configuración (singleton)."""
        if self._settings_service is None:
            self._settings_service = SettingsService(self.record_store, self.broadcaster)
        return self._settings_service

    @property
    def stats_service(self) -> StatsService:
        """Servicio de estadísticas (singleton)."""
        if self._stats_service is None:
            self._stats_service = StatsService(self.order_service, self.product_service)
        return self._stats_service

    # =========================================================================
    # ARRANQUE
    # =========================================================================

    async def startup(self) -> Dict[str, Any]:
        """
        Prepara la aplicación para usarse.
        Ningún paso bloquea el arranque: si el almacén no abre, la app
        sigue funcionando con listas vacías y la migración se reintenta.

        Returns:
            Dict {'ok', 'migration', 'admin', 'session'}
        """
        store_ok = True
        try:
            await self.record_store.open()
        except StorageUnavailable as e:
            print(f"[STORAGE ERROR] {e.message}")
            store_ok = False

        # La identidad persistida se usa para marcar dueños en la migración
        session = self.session_service.restore()
        migration = await self.migration_service.check_and_migrate(session)
        admin = await self.user_service.ensure_default_admin()

        return {
            'ok': store_ok and migration['ok'] and admin['ok'],
            'migration': migration,
            'admin': admin,
            'session': session,
        }

    async def shutdown(self) -> None:
        """Cierra el almacén y vuelca el resumen de profiling."""
        if self._record_store is not None:
            await self._record_store.close()
        write_stats_report()

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """
        Reinicia todas las instancias.
        Útil para testing o para recargar datos.
        """
        self._reset_slots()

    @classmethod
    def get_instance(cls, data_dir: str = None) -> 'AppContainer':
        """
        Obtiene la instancia singleton del contenedor.

        Args:
            data_dir: Carpeta de datos (solo se usa en primera llamada)
        """
        if cls._instance is None:
            return cls(data_dir)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


# Función helper para obtener el contenedor global
def get_container(data_dir: str = None) -> AppContainer:
    """
    Obtiene el contenedor de dependencias global.

    Args:
        data_dir: Carpeta de datos

    Returns:
        Instancia del contenedor
    """
    return AppContainer.get_instance(data_dir)
