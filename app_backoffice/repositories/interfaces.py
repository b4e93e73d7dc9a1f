# ==============================================================================
# INTERFACES DE REPOSITORIOS
# ==============================================================================
#
# Este archivo define las interfaces (protocolos) que los repositorios deben
# implementar. Esto permite:
#
# 1. INDEPENDENCIA DE ALMACENAMIENTO
#    - Los servicios dependen de interfaces, NO de implementaciones concretas
#    - Cambiar sqlite por otro motor solo requiere una nueva implementación
#
# 2. TESTING
#    - Fácil crear dobles que implementen estas interfaces
#      (por ejemplo un almacén que siempre falla al abrir)
#
# ==============================================================================

from typing import Any, Dict, Iterable, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class IKeyValueRepository(Protocol):
    """
    Almacén plano clave → string (equivalente a localStorage).
    Usado por: LegacyStoreAdapter, SessionService, MigrationService.
    """

    def get_item(self, key: str) -> Optional[str]:
        """Obtiene el valor de una clave o None."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Guarda un valor."""
        ...

    def remove_item(self, key: str) -> None:
        """Elimina una clave."""
        ...

    def get_json(self, key: str, default: Any = None) -> Any:
        """Lee y parsea una clave JSON."""
        ...

    def set_json(self, key: str, value: Any) -> None:
        """Serializa a JSON y guarda."""
        ...


@runtime_checkable
class ILegacyStore(Protocol):
    """
    Colecciones de la generación anterior (una lista por clave).
    """

    def read_collection(self, name: str) -> List[Dict[str, Any]]:
        """Lee una colección ([] si no existe)."""
        ...

    def write_collection(self, name: str, records: List[Dict[str, Any]]) -> None:
        """Reemplaza una colección."""
        ...

    def has_collection(self, name: str) -> bool:
        """True si la clave existe en el almacén plano."""
        ...

    def read_settings(self) -> Optional[Dict[str, Any]]:
        """Objeto de configuración legacy o None."""
        ...


@runtime_checkable
class IRecordStore(Protocol):
    """
    Almacén transaccional asíncrono por colecciones.

    Contrato de errores:
    - get_all / get  → StorageUnavailable si no se puede abrir
    - put / put_many / delete → WriteError si la transacción falla
    - delete de un id inexistente NO es error
    """

    async def get_all(self, collection: str) -> List[Dict[str, Any]]:
        ...

    async def get(self, collection: str, record_id: Any) -> Optional[Dict[str, Any]]:
        ...

    async def put(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def put_many(self, collection: str, records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        ...

    async def delete(self, collection: str, record_id: Any) -> None:
        ...
