# ==============================================================================
# SERVICIO DE USUARIOS
# ==============================================================================
# Centraliza toda la lógica de negocio relacionada con usuarios:
# login/logout, alta de usuarios, contraseñas y permisos.
#
# REGLA CRÍTICA - CUENTA "admin":
# Es la cuenta de arranque del sistema. Está BLINDADA y NO puede:
# - Ser eliminada (ni siquiera por un administrador)
# - Perder su rol de administrador
# Estas validaciones se hacen AQUÍ, no en la interfaz.
#
# CONTRASEÑAS:
# Por defecto se guardan en texto plano (sin seguridad real).
# Con BACKOFFICE_HASH_PASSWORDS=1 las nuevas se guardan con werkzeug;
# la verificación acepta ambos formatos.
# ==============================================================================

import time
import uuid
from typing import Any, Dict, List, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from app_backoffice.config import (
    COLLECTION_USERS,
    DEFAULT_ADMIN_ID,
    DEFAULT_ADMIN_NAME,
    DEFAULT_ADMIN_PASSWORD,
    DEFAULT_ADMIN_USERNAME,
    HASH_PASSWORDS,
)
from app_backoffice.errors import (
    BackofficeError,
    DuplicateUsername,
    InvalidCredentials,
    NotFound,
    PermissionDenied,
    ProtectedAccount,
    ValidationError,
    error_result,
)
from app_backoffice.models import SessionIdentity, User, UserRole
from app_backoffice.repositories.interfaces import IRecordStore
from app_backoffice.services.access_scope import AccessScope
from app_backoffice.services.session_service import SessionContext, SessionService


class UserService:
    """
    Servicio para gestión de usuarios.

    Responsabilidades:
    - Autenticación (login/logout)
    - CRUD de usuarios (solo administradores)
    - Protección de la cuenta 'admin'
    - Consulta de permisos por rol
    """

    # =========================================================================
    # CONSTANTES DE ROLES
    # =========================================================================
    ROLE_ADMIN = UserRole.ADMIN.value
    ROLE_USER = UserRole.USER.value

    # Cuenta protegida: NO puede ser eliminada ni degradada
    PROTECTED_USERNAME = DEFAULT_ADMIN_USERNAME

    VALID_ROLES = frozenset([ROLE_ADMIN, ROLE_USER])

    # Permisos de un usuario normal (el admin tiene todos)
    USER_PERMISSIONS = frozenset([
        'view_products',
        'add_order',
        'view_own_orders',
        'delete_own_orders',
        'edit_own_products',
        'view_profile',
        'view_settings',
    ])

    def __init__(
        self,
        record_store: IRecordStore,
        session_service: SessionService,
        access_scope: AccessScope,
        hash_passwords: bool = HASH_PASSWORDS
    ):
        """
        Inicializa el servicio de usuarios.

        Args:
            record_store: Almacén de registros (colección `users`)
            session_service: Máquina de estados de la sesión
            access_scope: Capa de acceso (listado de usuarios)
            hash_passwords: Guardar contraseñas nuevas con hash
        """
        self.record_store = record_store
        self.session_service = session_service
        self.access_scope = access_scope
        self.hash_passwords = hash_passwords

    # =========================================================================
    # CONTRASEÑAS
    # =========================================================================

    @staticmethod
    def is_password_hashed(password_value: str) -> bool:
        """
        Verifica si una contraseña ya está hasheada.

        Returns:
            True si está hasheada (pbkdf2: o scrypt:)
        """
        if not password_value:
            return False
        return password_value.startswith('pbkdf2:') or password_value.startswith('scrypt:')

    def _store_password(self, password: str) -> str:
        return generate_password_hash(password) if self.hash_passwords else password

    def _password_matches(self, stored: str, candidate: str) -> bool:
        # Soportar tanto hash como texto plano
        if self.is_password_hashed(stored):
            return check_password_hash(stored, candidate)
        return stored == candidate

    # =========================================================================
    # BÚSQUEDAS INTERNAS
    # =========================================================================

    async def _find_by_username(self, username: str) -> Optional[User]:
        """Búsqueda exacta (sensible a mayúsculas)."""
        for data in await self.record_store.get_all(COLLECTION_USERS):
            if data.get('username') == username:
                return User.from_dict(data)
        return None

    async def _find_by_id(self, user_id: str) -> Optional[User]:
        data = await self.record_store.get(COLLECTION_USERS, user_id)
        return User.from_dict(data) if data else None

    async def _generate_user_id(self) -> str:
        user_id = f"user_{int(time.time() * 1000)}"
        if await self.record_store.get(COLLECTION_USERS, user_id) is not None:
            user_id = f"{user_id}_{uuid.uuid4().hex[:6]}"
        return user_id

    # =========================================================================
    # ARRANQUE
    # =========================================================================

    async def ensure_default_admin(self) -> Dict[str, Any]:
        """
        Crea la cuenta 'admin' si no existe.
        Se ejecuta al arrancar, antes de cualquier login.

        Returns:
            Dict {'ok': bool, 'created': bool}
        """
        try:
            if await self._find_by_username(DEFAULT_ADMIN_USERNAME):
                return {'ok': True, 'created': False}

            admin = User(
                id=DEFAULT_ADMIN_ID,
                name=DEFAULT_ADMIN_NAME,
                username=DEFAULT_ADMIN_USERNAME,
                password=self._store_password(DEFAULT_ADMIN_PASSWORD),
                role=UserRole.ADMIN,
            )
            await self.record_store.put(COLLECTION_USERS, admin.to_dict())
            print(f"[SEGURIDAD] Cuenta '{DEFAULT_ADMIN_USERNAME}' creada con la contraseña por defecto")
            return {'ok': True, 'created': True}
        except BackofficeError as e:
            print(f"[ERROR] No se pudo crear la cuenta de administrador: {e.message}")
            return {**error_result(e), 'created': False}

    # =========================================================================
    # AUTENTICACIÓN
    # =========================================================================

    async def authenticate(self, username: str, password: str) -> User:
        """
        Verifica credenciales.

        Raises:
            InvalidCredentials: Usuario inexistente o contraseña incorrecta
        """
        user = await self._find_by_username(username)
        if user is None:
            raise InvalidCredentials('Usuario no encontrado')
        if not self._password_matches(user.password, password):
            raise InvalidCredentials('Contraseña incorrecta')
        return user

    async def login(self, username: str, password: str) -> Dict[str, Any]:
        """
        Inicia sesión.

        Args:
            username: Nombre de usuario (coincidencia exacta)
            password: Contraseña

        Returns:
            Dict {'ok': True, 'user': datos sin contraseña, 'session': SessionContext}
            o {'ok': False, 'error': ..., 'code': ...}
        """
        try:
            user = await self.authenticate(username, password)
        except BackofficeError as e:
            print(f"[SEGURIDAD] Login fallido para '{username}': {e.message}")
            return error_result(e)

        session = self.session_service.begin(SessionIdentity.from_user(user))
        return {'ok': True, 'user': user.to_public_dict(), 'session': session}

    def logout(self) -> Dict[str, Any]:
        """Cierra la sesión actual."""
        self.session_service.end()
        return {'ok': True}

    # =========================================================================
    # PERMISOS
    # =========================================================================

    def has_permission(self, session: SessionContext, permission: str) -> bool:
        """
        Verifica si la sesión tiene un permiso.

        Args:
            session: Contexto de sesión
            permission: Nombre del permiso (ej. 'add_order')
        """
        if not session.is_authenticated:
            return False
        if session.is_admin:
            return True
        return permission in self.USER_PERMISSIONS

    @staticmethod
    def _require_admin(session: SessionContext) -> None:
        if not session.is_admin:
            raise PermissionDenied('Solo un administrador puede gestionar usuarios')

    # =========================================================================
    # CRUD DE USUARIOS
    # =========================================================================

    async def get_all_users(self, session: SessionContext) -> List[Dict[str, Any]]:
        """
        Usuarios registrados, sin contraseñas.
        Lista vacía si la sesión no es de administrador.
        """
        users = await self.access_scope.list_all_users(session)
        return [User.from_dict(u).to_public_dict() for u in users]

    async def create_user(
        self,
        session: SessionContext,
        name: str,
        username: str,
        password: str,
        role: str = ROLE_USER
    ) -> Dict[str, Any]:
        """
        Crea un nuevo usuario.

        Args:
            session: Debe ser de administrador
            name: Nombre visible
            username: Nombre de usuario (único, sensible a mayúsculas)
            password: Contraseña
            role: 'admin' o 'user'

        Returns:
            Dict con resultado {'ok': bool, 'user': ..., 'error': str opcional}
        """
        try:
            self._require_admin(session)

            if not username or not username.strip():
                raise ValidationError('Nombre de usuario requerido')
            if not password:
                raise ValidationError('Contraseña requerida')
            if role not in self.VALID_ROLES:
                raise ValidationError(f"Rol inválido: {role}")

            username = username.strip()
            if await self._find_by_username(username):
                raise DuplicateUsername()

            user = User(
                id=await self._generate_user_id(),
                name=(name or username).strip(),
                username=username,
                password=self._store_password(password),
                role=UserRole(role),
            )
            await self.record_store.put(COLLECTION_USERS, user.to_dict())
        except BackofficeError as e:
            return error_result(e)

        return {'ok': True, 'user': user.to_public_dict()}

    async def save_user(self, session: SessionContext, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Actualiza los datos de un usuario existente (nombre, usuario, rol).
        La contraseña se conserva si no viene en `data`.

        VALIDACIONES DE SEGURIDAD:
        1. Solo administradores
        2. La cuenta 'admin' no puede perder su rol ni su nombre de usuario
        3. El nombre de usuario sigue siendo único
        """
        try:
            self._require_admin(session)
            current = await self._find_by_id(str(data.get('id', '')))
            if current is None:
                raise NotFound('Usuario no encontrado')

            updated = User.from_dict({**current.to_dict(), **data})
            if data.get('password'):
                updated.password = self._store_password(data['password'])
            else:
                updated.password = current.password

            # ═══════════════════════════════════════════════════════════════
            # PROTECCIÓN CRÍTICA: la cuenta 'admin' es INTOCABLE
            # ═══════════════════════════════════════════════════════════════
            if current.is_protected():
                if updated.role != UserRole.ADMIN or updated.username != current.username:
                    raise ProtectedAccount('La cuenta de administrador no puede perder su rol')

            if updated.username != current.username:
                other = await self._find_by_username(updated.username)
                if other and other.id != current.id:
                    raise DuplicateUsername()

            await self.record_store.put(COLLECTION_USERS, updated.to_dict())
        except BackofficeError as e:
            return error_result(e)

        return {'ok': True, 'user': updated.to_public_dict()}

    async def delete_user(self, session: SessionContext, user_id: str) -> Dict[str, Any]:
        """
        Elimina un usuario.

        VALIDACIONES DE SEGURIDAD:
        1. La cuenta 'admin' NUNCA se elimina (sin importar quién lo pida)
        2. Solo administradores
        3. Usuario debe existir

        Returns:
            Dict con resultado {'ok': bool, 'error': str opcional}
        """
        try:
            target = await self._find_by_id(user_id)

            # Primero la protección: falla con ProtectedAccount para cualquier rol
            if target is not None and target.is_protected():
                raise ProtectedAccount()

            self._require_admin(session)

            if target is None:
                raise NotFound('Usuario no encontrado')

            await self.record_store.delete(COLLECTION_USERS, user_id)
        except BackofficeError as e:
            return error_result(e)

        print(f"[SEGURIDAD] Usuario '{target.username}' eliminado por '{session.identity.username}'")
        return {'ok': True}

    async def change_password(self, session: SessionContext, user_id: str,
                              new_password: str) -> Dict[str, Any]:
        """
        Cambia la contraseña de un usuario (solo administradores).

        Returns:
            Dict con resultado {'ok': bool, 'error': str opcional}
        """
        try:
            self._require_admin(session)
            if not new_password:
                raise ValidationError('La contraseña no puede estar vacía')

            user = await self._find_by_id(user_id)
            if user is None:
                raise NotFound('Usuario no encontrado')

            user.password = self._store_password(new_password)
            await self.record_store.put(COLLECTION_USERS, user.to_dict())
        except BackofficeError as e:
            return error_result(e)

        return {'ok': True}
