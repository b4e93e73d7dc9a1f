# ==============================================================================
# SERVICIO DE CONFIGURACIÓN
# ==============================================================================
# Registro único `app-settings` en la colección `settings`.
# Si no existe (o el almacén no está disponible) se usan los valores por defecto.
# ==============================================================================

from typing import Any, Dict

from app_backoffice.config import COLLECTION_SETTINGS, SETTINGS_RECORD_ID
from app_backoffice.errors import BackofficeError, PermissionDenied, StorageUnavailable, error_result
from app_backoffice.models import Settings
from app_backoffice.repositories.interfaces import IRecordStore
from app_backoffice.services.events import ChangeBroadcaster
from app_backoffice.services.session_service import SessionContext


class SettingsService:
    """Lectura y guardado de la configuración de la tienda."""

    def __init__(self, record_store: IRecordStore, broadcaster: ChangeBroadcaster = None):
        self.record_store = record_store
        self.broadcaster = broadcaster

    async def load(self) -> Settings:
        try:
            record = await self.record_store.get(COLLECTION_SETTINGS, SETTINGS_RECORD_ID)
        except StorageUnavailable as e:
            print(f"[STORAGE ERROR] {COLLECTION_SETTINGS}: {e.message}")
            record = None
        return Settings.from_dict(record or {})

    async def get_settings(self) -> Dict[str, Any]:
        """
        Configuración actual.

        Returns:
            Dict con darkMode, emailNotifications, pushNotifications,
            storeTimeZone y currency
        """
        return (await self.load()).to_dict()

    async def save_settings(self, session: SessionContext, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Guarda cambios parciales sobre la configuración actual.

        Args:
            session: Cualquier sesión autenticada
            updates: Solo las claves a cambiar

        Returns:
            Dict {'ok': True, 'settings': {...}} o error
        """
        try:
            if not session.is_authenticated:
                raise PermissionDenied('Debes iniciar sesión')
            current = (await self.load()).to_dict()
            current.update(updates or {})
            settings = Settings.from_dict(current)
            await self.record_store.put(COLLECTION_SETTINGS, settings.to_dict())
        except BackofficeError as e:
            return error_result(e)

        if self.broadcaster:
            self.broadcaster.publish(COLLECTION_SETTINGS)
        return {'ok': True, 'settings': settings.to_dict()}

    async def currency_symbol(self) -> str:
        """'$' para USD, 'DH' para el resto."""
        return (await self.load()).currency_symbol
