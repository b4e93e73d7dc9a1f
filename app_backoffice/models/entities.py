# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del negocio.
# Diseñadas para ser independientes del mecanismo de persistencia.
#
# Los registros se guardan con claves camelCase (mismo formato que los datos
# legacy) para que la migración copie registros sin transformarlos.
#
# CAMPOS DERIVADOS:
# - Product.status              → derive_stock_status(stock)
# - Order.hasWinEligibleProducts → derive_win_eligible(items)
# Se recalculan SIEMPRE en to_dict() y se ignoran en from_dict().
# ==============================================================================

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from app_backoffice.config import (
    DEFAULT_ADMIN_USERNAME,
    DEFAULT_CUSTOMER_NAME,
    DEFAULT_SETTINGS,
    LOW_STOCK_THRESHOLD,
    SETTINGS_RECORD_ID,
)


# ==============================================================================
# ENUMERACIONES - Estados y tipos válidos
# ==============================================================================

class UserRole(str, Enum):
    """Roles de usuario disponibles en el sistema."""
    ADMIN = "admin"
    USER = "user"


class OrderStatus(str, Enum):
    """Estados posibles de un pedido."""
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    COMPLETED = "completed"  # Solo usado por el panel


class StockStatus(str, Enum):
    """Estado de stock mostrado en el catálogo."""
    IN_STOCK = "in-stock"
    LOW_STOCK = "low-stock"
    OUT_OF_STOCK = "out-of-stock"


# Campo de propietario en todos los registros con dueño
OWNER_FIELD = 'ownerUserId'

# Nombre del campo en los datos legacy
LEGACY_OWNER_FIELD = 'userId'


# ==============================================================================
# DERIVACIONES PURAS
# ==============================================================================

def parse_price(value: Any) -> float:
    """
    Convierte un precio numérico o string ("129.99", "45 DH") a float.

    Returns:
        El valor numérico, o 0.0 si no se puede interpretar
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = re.sub(r'[^0-9.\-]+', '', value)
        try:
            return float(cleaned)
        except ValueError:
            return 0.0
    return 0.0


def parse_stock(value: Any) -> int:
    """Convierte el stock a entero no negativo."""
    try:
        stock = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, stock)


def derive_stock_status(stock: int) -> StockStatus:
    """
    Estado de stock:
    - out-of-stock si stock <= 0
    - low-stock si 0 < stock <= LOW_STOCK_THRESHOLD
    - in-stock en otro caso
    """
    if stock <= 0:
        return StockStatus.OUT_OF_STOCK
    if stock <= LOW_STOCK_THRESHOLD:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def derive_win_eligible(items: Iterable[Any]) -> bool:
    """True si algún ítem es elegible para el sorteo."""
    for item in items:
        if isinstance(item, dict):
            if item.get('winEligible'):
                return True
        elif getattr(item, 'win_eligible', False):
            return True
    return False


def owner_of(record: Dict[str, Any]) -> Optional[str]:
    """Propietario de un registro (acepta el campo legacy `userId`)."""
    owner = record.get(OWNER_FIELD)
    if not owner:
        owner = record.get(LEGACY_OWNER_FIELD)
    return owner or None


def normalize_role(role: Any) -> UserRole:
    """Todo lo que no sea 'admin' se trata como usuario normal."""
    if isinstance(role, UserRole):
        return role
    return UserRole.ADMIN if str(role or '').strip() == UserRole.ADMIN.value else UserRole.USER


def utc_now_iso() -> str:
    """Timestamp ISO-8601 en UTC con sufijo Z."""
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


# ==============================================================================
# ENTIDADES DE USUARIO
# ==============================================================================

@dataclass
class User:
    """
    Representa un usuario del sistema.

    Attributes:
        id: Identificador único
        name: Nombre visible
        username: Nombre de usuario (único, sensible a mayúsculas)
        password: Contraseña (texto plano, o hash si HASH_PASSWORDS)
        role: Rol del usuario que define sus permisos
    """
    id: str
    name: str
    username: str
    password: str
    role: UserRole = UserRole.USER

    def is_admin(self) -> bool:
        """Verifica si el usuario tiene permisos de administrador."""
        return self.role == UserRole.ADMIN

    def is_protected(self) -> bool:
        """La cuenta 'admin' no puede eliminarse."""
        return self.username == DEFAULT_ADMIN_USERNAME

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia."""
        return {
            'id': self.id,
            'name': self.name,
            'username': self.username,
            'password': self.password,
            'role': self.role.value if isinstance(self.role, Enum) else self.role,
        }

    def to_public_dict(self) -> Dict[str, Any]:
        """Datos del usuario sin contraseña."""
        d = self.to_dict()
        d.pop('password')
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'User':
        """Crea instancia desde diccionario."""
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name', ''),
            username=data.get('username', ''),
            password=data.get('password', ''),
            role=normalize_role(data.get('role')),
        )


@dataclass(frozen=True)
class SessionIdentity:
    """Identidad persistida de la sesión: {id, name, username, role}."""
    id: str
    name: str
    username: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'username': self.username,
            'role': self.role.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SessionIdentity':
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name', ''),
            username=data.get('username', ''),
            role=normalize_role(data.get('role')),
        )

    @classmethod
    def from_user(cls, user: User) -> 'SessionIdentity':
        return cls(id=user.id, name=user.name, username=user.username, role=user.role)


# ==============================================================================
# ENTIDADES DE PRODUCTO
# ==============================================================================

@dataclass
class Product:
    """
    Producto del catálogo.

    Attributes:
        id: Identificador único
        name: Nombre del producto
        category: Categoría ('clothing' / 'other')
        price: Precio (número o string numérico, se conserva tal cual)
        stock: Unidades disponibles (nunca negativo)
        win_eligible: Participa en el sorteo promocional
        sales: Contador de unidades vendidas
        image_url: Imagen (URL o data URI)
        barcode: Código escaneable (opcional)
        owner_user_id: Propietario; None = visible para todos
    """
    id: str
    name: str
    category: str = 'clothing'
    price: Any = 0
    stock: int = 0
    win_eligible: bool = True
    sales: int = 0
    image_url: str = ''
    barcode: Optional[str] = None
    owner_user_id: Optional[str] = None

    @property
    def status(self) -> StockStatus:
        """Estado de stock, siempre derivado del stock actual."""
        return derive_stock_status(self.stock)

    @property
    def unit_price(self) -> float:
        return parse_price(self.price)

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia."""
        d = {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'price': self.price,
            'stock': self.stock,
            'status': self.status.value,
            'winEligible': self.win_eligible,
            'sales': self.sales,
            'imageUrl': self.image_url,
        }
        if self.barcode:
            d['barcode'] = self.barcode
        if self.owner_user_id:
            d[OWNER_FIELD] = self.owner_user_id
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        """Crea instancia desde diccionario (ignora el `status` guardado)."""
        win = data.get('winEligible')
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name', ''),
            category=data.get('category', 'clothing'),
            price=data.get('price', 0),
            stock=parse_stock(data.get('stock', 0)),
            win_eligible=True if win is None else bool(win),
            sales=parse_stock(data.get('sales', 0)),
            image_url=data.get('imageUrl') or '',
            barcode=data.get('barcode'),
            owner_user_id=owner_of(data),
        )


# ==============================================================================
# ENTIDADES DE PEDIDO
# ==============================================================================

@dataclass
class OrderItem:
    """
    Línea de un pedido: copia del producto al momento de la compra + cantidad.
    """
    id: str
    name: str
    price: Any
    quantity: int
    win_eligible: bool = False
    category: str = ''
    image_url: str = ''

    @property
    def line_total(self) -> float:
        return parse_price(self.price) * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'price': self.price,
            'quantity': self.quantity,
            'winEligible': self.win_eligible,
            'category': self.category,
            'imageUrl': self.image_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OrderItem':
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name', ''),
            price=data.get('price', 0),
            quantity=parse_stock(data.get('quantity', 0)),
            win_eligible=bool(data.get('winEligible', False)),
            category=data.get('category', ''),
            image_url=data.get('imageUrl') or '',
        )

    @classmethod
    def from_product(cls, product: Product, quantity: int) -> 'OrderItem':
        return cls(
            id=product.id,
            name=product.name,
            price=product.price,
            quantity=quantity,
            win_eligible=product.win_eligible,
            category=product.category,
            image_url=product.image_url,
        )


@dataclass
class Order:
    """
    Representa un pedido.

    Attributes:
        id: Identificador único
        order_number: Código visible (ORD-123), no garantizado único
        customer_name: Cliente ('Guest' si vacío)
        date: Timestamp ISO de creación
        status: Estado del pedido
        total: Total del pedido
        items: Líneas del pedido
        owner_user_id: Usuario que creó el pedido
    """
    id: str
    order_number: str
    customer_name: str = DEFAULT_CUSTOMER_NAME
    date: str = ''
    status: str = OrderStatus.PENDING.value
    total: float = 0.0
    items: List[OrderItem] = field(default_factory=list)
    owner_user_id: Optional[str] = None

    def __post_init__(self):
        if not self.date:
            self.date = utc_now_iso()
        if not (self.customer_name or '').strip():
            self.customer_name = DEFAULT_CUSTOMER_NAME

    @property
    def has_win_eligible_products(self) -> bool:
        return derive_win_eligible(self.items)

    def calculate_total(self) -> float:
        """Recalcula el total: Σ precio × cantidad."""
        self.total = round(sum(item.line_total for item in self.items), 2)
        return self.total

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia."""
        d = {
            'id': self.id,
            'orderNumber': self.order_number,
            'customerName': self.customer_name,
            'date': self.date,
            'status': self.status,
            'total': self.total,
            'items': [item.to_dict() for item in self.items],
            'hasWinEligibleProducts': self.has_win_eligible_products,
        }
        if self.owner_user_id:
            d[OWNER_FIELD] = self.owner_user_id
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Order':
        """Crea instancia desde diccionario (ignora `hasWinEligibleProducts` guardado)."""
        return cls(
            id=str(data.get('id', '')),
            order_number=data.get('orderNumber', ''),
            customer_name=data.get('customerName') or data.get('customer') or '',
            date=data.get('date', ''),
            status=data.get('status', OrderStatus.PENDING.value),
            total=parse_price(data.get('total', 0)),
            items=[OrderItem.from_dict(i) for i in data.get('items') or []],
            owner_user_id=owner_of(data),
        )


# ==============================================================================
# NOTIFICACIONES Y CONFIGURACIÓN
# ==============================================================================

@dataclass
class Notification:
    """Aviso mostrado al usuario. `time` es un texto para mostrar."""
    id: int
    title: str
    message: str
    time: str = ''
    read: bool = False
    owner_user_id: Optional[str] = None

    def __post_init__(self):
        if not self.time:
            self.time = datetime.now().strftime("%Y-%m-%d %H:%M")

    def to_dict(self) -> Dict[str, Any]:
        d = {
            'id': self.id,
            'title': self.title,
            'message': self.message,
            'time': self.time,
            'read': self.read,
        }
        if self.owner_user_id:
            d[OWNER_FIELD] = self.owner_user_id
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Notification':
        try:
            notification_id = int(data.get('id', 0))
        except (TypeError, ValueError):
            notification_id = 0
        return cls(
            id=notification_id,
            title=data.get('title', ''),
            message=data.get('message', ''),
            time=data.get('time', ''),
            read=bool(data.get('read', False)),
            owner_user_id=owner_of(data),
        )


@dataclass
class Settings:
    """Configuración única de la tienda."""
    dark_mode: bool = DEFAULT_SETTINGS['darkMode']
    email_notifications: bool = DEFAULT_SETTINGS['emailNotifications']
    push_notifications: bool = DEFAULT_SETTINGS['pushNotifications']
    store_time_zone: str = DEFAULT_SETTINGS['storeTimeZone']
    currency: str = DEFAULT_SETTINGS['currency']

    @property
    def currency_symbol(self) -> str:
        return '$' if self.currency == 'USD' else 'DH'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': SETTINGS_RECORD_ID,
            'darkMode': self.dark_mode,
            'emailNotifications': self.email_notifications,
            'pushNotifications': self.push_notifications,
            'storeTimeZone': self.store_time_zone,
            'currency': self.currency,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Settings':
        merged = dict(DEFAULT_SETTINGS)
        merged.update({k: v for k, v in (data or {}).items() if k in DEFAULT_SETTINGS})
        return cls(
            dark_mode=bool(merged['darkMode']),
            email_notifications=bool(merged['emailNotifications']),
            push_notifications=bool(merged['pushNotifications']),
            store_time_zone=merged['storeTimeZone'],
            currency=merged['currency'],
        )
