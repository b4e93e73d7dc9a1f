# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Esta capa encapsula todo el acceso a la persistencia.
# Dos generaciones de almacenamiento conviven:
#
# ESTRUCTURA:
# ├── interfaces.py         → Protocolos/Interfaces (contratos)
# ├── base.py               → Clases base JSON (BaseRepository, KeyValueRepository)
# ├── legacy_repository.py  → Colecciones planas de la generación anterior
# └── record_store.py       → Almacén transaccional actual (sqlite, async)
#
# La migración de una generación a otra vive en services/migration_service.py
# ==============================================================================

# Interfaces
from app_backoffice.repositories.interfaces import (
    IKeyValueRepository,
    ILegacyStore,
    IRecordStore,
)

# Implementaciones concretas
from app_backoffice.repositories.base import BaseRepository, KeyValueRepository
from app_backoffice.repositories.legacy_repository import LegacyStoreAdapter
from app_backoffice.repositories.record_store import RecordStore

__all__ = [
    # Interfaces
    'IKeyValueRepository',
    'ILegacyStore',
    'IRecordStore',

    # Clases base
    'BaseRepository',
    'KeyValueRepository',

    # Implementaciones
    'LegacyStoreAdapter',
    'RecordStore',
]
