# ==============================================================================
# APP BACKOFFICE - Persistencia local, autorización y servicios de tienda
# ==============================================================================
# Capas:
# ├── models/        → Entidades (dataclasses) y derivaciones puras
# ├── repositories/  → Almacén plano (JSON) y almacén transaccional (sqlite)
# ├── services/      → Lógica de negocio (acceso, sesión, pedidos, productos...)
# └── app_container  → Inyección de dependencias y arranque
# ==============================================================================

__version__ = '1.0.0'
