# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Este módulo define todas las entidades del dominio usando dataclasses.
# Beneficios:
#   - Type hints para mejor documentación y autocompletado
#   - Campos derivados calculados en un único lugar
#   - Fácil serialización/deserialización para JSON o sqlite
# ==============================================================================

from .entities import (
    # Usuarios y sesión
    User,
    UserRole,
    SessionIdentity,

    # Productos
    Product,
    StockStatus,

    # Pedidos
    Order,
    OrderItem,
    OrderStatus,

    # Notificaciones y configuración
    Notification,
    Settings,

    # Derivaciones
    OWNER_FIELD,
    LEGACY_OWNER_FIELD,
    derive_stock_status,
    derive_win_eligible,
    normalize_role,
    owner_of,
    parse_price,
    parse_stock,
    utc_now_iso,
)

__all__ = [
    'User',
    'UserRole',
    'SessionIdentity',
    'Product',
    'StockStatus',
    'Order',
    'OrderItem',
    'OrderStatus',
    'Notification',
    'Settings',
    'OWNER_FIELD',
    'LEGACY_OWNER_FIELD',
    'derive_stock_status',
    'derive_win_eligible',
    'normalize_role',
    'owner_of',
    'parse_price',
    'parse_stock',
    'utc_now_iso',
]
