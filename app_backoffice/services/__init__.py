# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Esta capa contiene TODA la lógica de negocio de la aplicación.
#
# PRINCIPIOS:
# 1. Los servicios reciben la sesión como argumento (SessionContext)
# 2. Aplican reglas de negocio, permisos y validaciones
# 3. Capturan los errores de almacenamiento y devuelven
#    {'ok': False, 'error': ..., 'code': ...}; nada llega sin manejar a la interfaz
#
# ESTRUCTURA:
# ├── events.py               → Avisos de cambio entre vistas
# ├── session_service.py      → Máquina de estados de la sesión
# ├── access_scope.py         → Visibilidad y propiedad de registros
# ├── user_service.py         → Usuarios, login, ¡protección de 'admin'!
# ├── migration_service.py    → Migración única legacy → almacén de registros
# ├── product_service.py      → Catálogo y stock
# ├── order_service.py        → Pedidos y escaneo rápido
# ├── notification_service.py → Notificaciones
# ├── settings_service.py     → Configuración de la tienda
# └── stats_service.py        → Estadísticas del panel
# ==============================================================================

from app_backoffice.services.events import ChangeBroadcaster, SESSION_TOPIC
from app_backoffice.services.session_service import (
    ANONYMOUS,
    SessionContext,
    SessionService,
    SessionState,
)
from app_backoffice.services.access_scope import AccessScope
from app_backoffice.services.user_service import UserService
from app_backoffice.services.migration_service import MigrationService
from app_backoffice.services.product_service import ProductService
from app_backoffice.services.notification_service import NotificationService
from app_backoffice.services.order_service import OrderService
from app_backoffice.services.settings_service import SettingsService
from app_backoffice.services.stats_service import StatsService

__all__ = [
    'ChangeBroadcaster',
    'SESSION_TOPIC',
    'ANONYMOUS',
    'SessionContext',
    'SessionService',
    'SessionState',
    'AccessScope',
    'UserService',
    'MigrationService',
    'ProductService',
    'NotificationService',
    'OrderService',
    'SettingsService',
    'StatsService',
]
