# ==============================================================================
# ADAPTADOR DEL ALMACÉN LEGACY
# ==============================================================================
# Lee/escribe cada colección como UNA lista serializada bajo una clave plana.
#   products      → "[{...}, ...]"
#   orders        → "[{...}, ...]"
#   users         → "[{...}, ...]"
#   notifications → "[{...}, ...]"
#   userSettings  → "{...}"   (objeto, no lista)
#
# Clave ausente = colección vacía, NUNCA un error.
# ==============================================================================

from typing import Any, Dict, List, Optional

from app_backoffice.config import KEY_LEGACY_SETTINGS
from app_backoffice.repositories.base import KeyValueRepository


class LegacyStoreAdapter:
    """Acceso síncrono a las colecciones de la generación anterior."""

    def __init__(self, kv_repo: KeyValueRepository):
        self.kv_repo = kv_repo

    def read_collection(self, name: str) -> List[Dict[str, Any]]:
        """
        Lee una colección legacy.

        Args:
            name: Nombre de la clave (products, orders, ...)

        Returns:
            Lista de registros ([] si la clave no existe)

        Raises:
            ValueError: Si el valor guardado no es una lista JSON válida
        """
        data = self.kv_repo.get_json(name, default=[])
        if data is None:
            return []
        if not isinstance(data, list):
            raise ValueError(f"La colección legacy '{name}' no es una lista")
        return data

    def write_collection(self, name: str, records: List[Dict[str, Any]]) -> None:
        """Reemplaza la colección completa."""
        self.kv_repo.set_json(name, list(records))

    def has_collection(self, name: str) -> bool:
        return self.kv_repo.get_item(name) is not None

    def read_settings(self) -> Optional[Dict[str, Any]]:
        """Objeto de configuración legacy, o None si no existe."""
        data = self.kv_repo.get_json(KEY_LEGACY_SETTINGS)
        if data is None:
            return None
        if not isinstance(data, dict):
            raise ValueError(f"'{KEY_LEGACY_SETTINGS}' no es un objeto")
        return data

    def write_settings(self, settings: Dict[str, Any]) -> None:
        self.kv_repo.set_json(KEY_LEGACY_SETTINGS, settings)
