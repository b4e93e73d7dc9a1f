# ==============================================================================
# SERVICIO DE PRODUCTOS
# ==============================================================================
# Centraliza toda la lógica de negocio relacionada con productos y stock.
#
# REGLAS:
# - El stock NUNCA es negativo: cada descuento se recorta en 0.
# - El estado (in-stock / low-stock / out-of-stock) se recalcula en cada
#   lectura y en cada escritura con derive_stock_status().
# - Un usuario normal ve sus productos y los que no tienen dueño.
# ==============================================================================

import math
import time
import uuid
from typing import Any, Dict, List, Optional

from app_backoffice.config import (
    COLLECTION_PRODUCTS,
    DEFAULT_PRODUCT_CATEGORY,
    PRODUCT_CATEGORIES,
)
from app_backoffice.errors import BackofficeError, NotFound, ValidationError, error_result
from app_backoffice.models import Product
from app_backoffice.repositories.interfaces import IRecordStore
from app_backoffice.services.access_scope import AccessScope
from app_backoffice.services.session_service import SessionContext


class ProductService:
    """
    Servicio para gestión del catálogo.

    Responsabilidades:
    - Listado filtrado y búsqueda por código
    - Alta / edición / baja de productos con validación
    - Descuento de stock y contador de ventas al registrar pedidos
    """

    def __init__(self, access_scope: AccessScope, record_store: IRecordStore):
        """
        Args:
            access_scope: Capa de acceso por propietario
            record_store: Almacén de registros (solo para actualizar stock
                conservando el dueño original del producto)
        """
        self.access_scope = access_scope
        self.record_store = record_store

    # =========================================================================
    # LECTURA
    # =========================================================================

    async def get_all_products(
        self,
        session: SessionContext,
        search: str = None,
        category: str = None,
        status: str = None,
        win_eligible: bool = None
    ) -> List[Dict[str, Any]]:
        """
        Productos visibles para la sesión, con estado recalculado.

        Args:
            session: Contexto de sesión
            search: Texto a buscar en el nombre (sin distinguir mayúsculas)
            category: Filtrar por categoría
            status: Filtrar por estado de stock
            win_eligible: Filtrar por elegibilidad para el sorteo

        Returns:
            Lista de productos como dicts
        """
        records = await self.access_scope.list_visible(session, COLLECTION_PRODUCTS)
        products = [Product.from_dict(r) for r in records]

        if search:
            needle = search.strip().lower()
            products = [p for p in products if needle in (p.name or '').lower()]
        if category:
            products = [p for p in products if p.category == category]
        if status:
            products = [p for p in products if p.status.value == status]
        if win_eligible is not None:
            products = [p for p in products if p.win_eligible == win_eligible]

        return [p.to_dict() for p in products]

    async def get_product(self, session: SessionContext, product_id: str) -> Optional[Dict[str, Any]]:
        """Producto por id, o None si no existe o no es visible."""
        record = await self.access_scope.get_visible(session, COLLECTION_PRODUCTS, product_id)
        return Product.from_dict(record).to_dict() if record else None

    async def find_by_code(self, session: SessionContext, code: str) -> Optional[Dict[str, Any]]:
        """
        Busca un producto escaneado por id o por código de barras.

        Args:
            session: Contexto de sesión
            code: Código leído

        Returns:
            El producto o None si ningún producto visible coincide
        """
        code = (code or '').strip()
        if not code:
            return None
        for product in await self.get_all_products(session):
            if str(product['id']) == code or (product.get('barcode') or '') == code:
                return product
        return None

    # =========================================================================
    # VALIDACIÓN
    # =========================================================================

    @staticmethod
    def generate_product_id() -> str:
        return f"{int(time.time() * 1000)}{uuid.uuid4().hex[:4]}"

    @staticmethod
    def _validate_price(value: Any) -> Any:
        if isinstance(value, bool):
            raise ValidationError('El precio debe ser numérico')
        if isinstance(value, (int, float)):
            if not math.isfinite(value):
                raise ValidationError('El precio debe ser numérico')
            if value < 0:
                raise ValidationError('El precio no puede ser negativo')
            return value
        if isinstance(value, str):
            try:
                number = float(value.strip())
            except ValueError:
                raise ValidationError('El precio debe ser numérico') from None
            if not math.isfinite(number):
                raise ValidationError('El precio debe ser numérico')
            if number < 0:
                raise ValidationError('El precio no puede ser negativo')
            return value.strip()
        raise ValidationError('El precio debe ser numérico')

    @staticmethod
    def _validate_stock(value: Any) -> int:
        if isinstance(value, bool):
            raise ValidationError('El stock debe ser un entero')
        try:
            stock = int(value)
        except (TypeError, ValueError, OverflowError):
            raise ValidationError('El stock debe ser un entero') from None
        if isinstance(value, float) and value != stock:
            raise ValidationError('El stock debe ser un entero')
        if stock < 0:
            raise ValidationError('El stock no puede ser negativo')
        return stock

    def build_product(self, data: Dict[str, Any]) -> Product:
        """
        Valida y normaliza los datos del formulario.

        Raises:
            ValidationError: Nombre vacío, stock inválido o precio no numérico
        """
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError('El nombre del producto es obligatorio')

        category = data.get('category') or DEFAULT_PRODUCT_CATEGORY
        if category not in PRODUCT_CATEGORIES:
            category = 'other'

        price = self._validate_price(data.get('price', 0))
        stock = self._validate_stock(data.get('stock', 0))

        win = data.get('winEligible')
        product = Product.from_dict({
            **data,
            'id': data.get('id') or self.generate_product_id(),
            'name': name,
            'category': category,
            'price': price,
            'stock': stock,
            'winEligible': True if win is None else bool(win),
        })
        return product

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    async def save_product(self, session: SessionContext, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Crea o actualiza un producto.

        Returns:
            Dict {'ok': True, 'product': {...}} o {'ok': False, 'error': ..., 'code': ...}
        """
        try:
            product = self.build_product(data)
            saved = await self.access_scope.save_owned(session, COLLECTION_PRODUCTS, product.to_dict())
        except BackofficeError as e:
            return error_result(e)
        return {'ok': True, 'product': saved}

    async def save_products(self, session: SessionContext, items: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Guarda varios productos en una sola transacción (todos o ninguno)."""
        try:
            records = [self.build_product(d).to_dict() for d in items]
            saved = await self.access_scope.save_many_owned(session, COLLECTION_PRODUCTS, records)
        except BackofficeError as e:
            return error_result(e)
        return {'ok': True, 'products': saved}

    async def delete_product(self, session: SessionContext, product_id: str) -> Dict[str, Any]:
        """Elimina un producto (admin: cualquiera; usuario: solo los suyos)."""
        try:
            await self.access_scope.delete_owned(session, COLLECTION_PRODUCTS, product_id)
        except BackofficeError as e:
            return error_result(e)
        return {'ok': True}

    # =========================================================================
    # CONTROL DE STOCK
    # =========================================================================

    async def record_sale(self, session: SessionContext, product_id: str, quantity: int) -> Dict[str, Any]:
        """
        Descuenta stock (recortado en 0) y suma ventas.

        Lectura y escritura son dos operaciones separadas del almacén: dos
        pedidos simultáneos del mismo producto pueden pisarse (lost update).

        Raises:
            NotFound: Si el producto no existe o no es visible
            WriteError: Si la escritura falla
        """
        record = await self.access_scope.get_visible(session, COLLECTION_PRODUCTS, product_id)
        if record is None:
            raise NotFound(f"Producto no encontrado: {product_id}")

        product = Product.from_dict(record)
        product.stock = max(0, product.stock - quantity)
        product.sales = product.sales + quantity
        # Escritura directa: el dueño del producto no cambia al venderse
        saved = await self.record_store.put(COLLECTION_PRODUCTS, product.to_dict())
        self.access_scope.notify(COLLECTION_PRODUCTS)
        return saved

    async def decrement_stock(self, session: SessionContext, product_id: str, quantity: int) -> Dict[str, Any]:
        """Versión con dict de resultado de record_sale()."""
        try:
            product = await self.record_sale(session, product_id, quantity)
        except BackofficeError as e:
            return error_result(e)
        return {'ok': True, 'product': product}
