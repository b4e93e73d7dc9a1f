# ==============================================================================
# SERVICIO DE ESTADÍSTICAS DEL PANEL
# ==============================================================================
# Calcula los números del panel sobre los pedidos y productos VISIBLES para la
# sesión (un usuario normal solo ve sus estadísticas).
#
# - Rango por defecto: inicio del mes de hace 6 meses → ahora
# - Ingresos: suma de `total` de los pedidos del rango (acepta totales string)
# - % último mes: pedidos del último mes sobre TODOS los pedidos visibles
# ==============================================================================

import calendar
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from app_backoffice.services.order_service import OrderService
from app_backoffice.services.product_service import ProductService
from app_backoffice.services.session_service import SessionContext


def _months_ago(moment: datetime, months: int) -> datetime:
    """Resta meses recortando el día al último día del mes destino."""
    month_index = moment.month - 1 - months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class StatsService:
    """
    Servicio para cálculo de estadísticas del panel.

    Responsabilidades:
    - Totales de pedidos, ingresos y productos por rango de fechas
    - Productos más vendidos
    """

    def __init__(self, order_service: OrderService, product_service: ProductService):
        self.order_service = order_service
        self.product_service = product_service

    @staticmethod
    def _parse_date(value: Any) -> Optional[datetime]:
        """
        Parsea una fecha ISO (con o sin zona). Las fechas sin zona se toman como UTC.
        Retorna None si no puede parsear.
        """
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, str) and value:
            try:
                parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
            except ValueError:
                return None
        else:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    @staticmethod
    def default_date_range(now: datetime = None) -> Tuple[datetime, datetime]:
        """Inicio del mes de hace seis meses → ahora."""
        now = now or datetime.now(timezone.utc)
        start = _months_ago(now, 6).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        return start, now

    async def dashboard_stats(
        self,
        session: SessionContext,
        start_date: Any = None,
        end_date: Any = None,
        now: datetime = None
    ) -> Dict[str, Any]:
        """
        Estadísticas del panel.

        Args:
            session: Contexto de sesión
            start_date: Inicio del rango (datetime o ISO). Por defecto hace 6 meses
            end_date: Fin del rango (datetime o ISO). Por defecto ahora
            now: Momento de referencia (tests)

        Returns:
            Dict con:
            - total_orders, total_revenue: pedidos del rango
            - total_products, win_eligible_products: catálogo visible
            - last_month_pct: % de pedidos del último mes sobre el total
            - start_date, end_date: rango aplicado (ISO)
        """
        now = self._parse_date(now) or datetime.now(timezone.utc)
        default_start, default_end = self.default_date_range(now)
        start = self._parse_date(start_date) or default_start
        end = self._parse_date(end_date) or default_end

        orders = await self.order_service.get_all_orders(session)
        products = await self.product_service.get_all_products(session)

        in_range = []
        for order in orders:
            order_date = self._parse_date(order.get('date'))
            if order_date is None:
                continue
            if start <= order_date <= end:
                in_range.append(order)

        revenue = round(sum(order['total'] for order in in_range), 2)

        month_ago = _months_ago(now, 1)
        last_month = 0
        for order in orders:
            order_date = self._parse_date(order.get('date'))
            if order_date is not None and order_date > month_ago:
                last_month += 1
        last_month_pct = round(last_month / len(orders) * 100) if orders else 0

        return {
            'total_orders': len(in_range),
            'total_revenue': revenue,
            'total_products': len(products),
            'win_eligible_products': sum(1 for p in products if p.get('winEligible')),
            'last_month_pct': last_month_pct,
            'start_date': start.isoformat(),
            'end_date': end.isoformat(),
        }

    async def popular_products(self, session: SessionContext, limit: int = None) -> List[Dict[str, Any]]:
        """Productos visibles ordenados por ventas (mayor primero)."""
        products = await self.product_service.get_all_products(session)
        products.sort(key=lambda p: p.get('sales', 0), reverse=True)
        return products[:limit] if limit else products
