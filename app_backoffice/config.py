# ==============================================================================
# CONFIGURACIÓN GLOBAL
# ==============================================================================
# Todas las constantes del sistema en un solo lugar.
# Los valores dependientes del entorno se leen de variables de entorno.
#
# Variables soportadas:
#   BACKOFFICE_DATA_DIR        → carpeta donde viven local_storage.json y records.sqlite3
#   BACKOFFICE_VERBOSE         → '1' para logs de depuración en consola
#   BACKOFFICE_HASH_PASSWORDS  → '1' para guardar contraseñas nuevas con hash (werkzeug)
#   BACKOFFICE_PROFILING       → '0' para desactivar el profiling de funciones
# ==============================================================================

import os


def _env_flag(name: str, default: bool = False) -> bool:
    """Interpreta una variable de entorno como booleano ('1', 'true', 'yes', 'on')."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


BASE = os.path.dirname(os.path.abspath(__file__))

# ═══════════════════════════════════════════════════════════════════════════════
# ALMACENAMIENTO
# ═══════════════════════════════════════════════════════════════════════════════
DATA_DIR = os.environ.get('BACKOFFICE_DATA_DIR') or os.path.join(BASE, 'data')

# Almacén plano (equivalente a localStorage del navegador)
LOCAL_STORAGE_FILE = 'local_storage.json'

# Almacén transaccional (equivalente a IndexedDB)
RECORD_STORE_FILE = 'records.sqlite3'

# Colecciones del almacén transaccional
COLLECTION_PRODUCTS = 'products'
COLLECTION_ORDERS = 'orders'
COLLECTION_USERS = 'users'
COLLECTION_NOTIFICATIONS = 'notifications'
COLLECTION_SETTINGS = 'settings'

COLLECTIONS = (
    COLLECTION_PRODUCTS,
    COLLECTION_ORDERS,
    COLLECTION_USERS,
    COLLECTION_NOTIFICATIONS,
    COLLECTION_SETTINGS,
)

# Claves del almacén plano
KEY_CURRENT_USER = 'currentUser'
KEY_MIGRATION_COMPLETE = 'migrationComplete'
KEY_LEGACY_SETTINGS = 'userSettings'

# Colecciones legacy que se migran como listas (en este orden)
LEGACY_LIST_COLLECTIONS = (
    COLLECTION_PRODUCTS,
    COLLECTION_ORDERS,
    COLLECTION_USERS,
    COLLECTION_NOTIFICATIONS,
)

# ═══════════════════════════════════════════════════════════════════════════════
# ADMINISTRADOR POR DEFECTO
# ═══════════════════════════════════════════════════════════════════════════════
# NO puede eliminarse. Se recrea al iniciar si no existe.
DEFAULT_ADMIN_ID = 'admin-id'
DEFAULT_ADMIN_USERNAME = 'admin'
DEFAULT_ADMIN_PASSWORD = 'password'
DEFAULT_ADMIN_NAME = 'Admin User'

# ═══════════════════════════════════════════════════════════════════════════════
# REGLAS DE NEGOCIO
# ═══════════════════════════════════════════════════════════════════════════════
LOW_STOCK_THRESHOLD = 10

PRODUCT_CATEGORIES = ('clothing', 'other')
DEFAULT_PRODUCT_CATEGORY = 'clothing'

DEFAULT_CUSTOMER_NAME = 'Guest'
QUICK_ORDER_CUSTOMER_NAME = 'Quick Order'

SETTINGS_RECORD_ID = 'app-settings'
DEFAULT_SETTINGS = {
    'darkMode': False,
    'emailNotifications': True,
    'pushNotifications': True,
    'storeTimeZone': 'Africa/Casablanca',
    'currency': 'MAD',
}

# ═══════════════════════════════════════════════════════════════════════════════
# MODO DE EJECUCIÓN
# ═══════════════════════════════════════════════════════════════════════════════
VERBOSE = _env_flag('BACKOFFICE_VERBOSE')
HASH_PASSWORDS = _env_flag('BACKOFFICE_HASH_PASSWORDS')
ENABLE_PROFILING = _env_flag('BACKOFFICE_PROFILING', default=True)
