import enum
from dataclasses import dataclass, asdict
from functools import wraps
from flask import g, jsonify, redirect
from .models import ROLES
from .views import render_access_denied

LOGIN_URL = "/login.html"
ALL_ROLES = frozenset(ROLES)


class Decision(enum.Enum):
    ALLOW = "allow"
    DENY_UNAUTHENTICATED = "deny-unauthenticated"
    DENY_FORBIDDEN = "deny-forbidden"


@dataclass
class Principal:
    """Identidad autenticada adjunta a la petición."""
    id: int
    username: str
    tipo: str
    nombre: str = None

    @classmethod
    def from_usuario(cls, usuario):
        return cls(
            id=usuario.id,
            username=usuario.username,
            tipo=usuario.tipo_usuario,
            nombre=usuario.nombre_completo,
        )

    @classmethod
    def from_session(cls, data):
        if not data:
            return None
        try:
            return cls(
                id=int(data["id"]),
                username=data["username"],
                tipo=data["tipo"],
                nombre=data.get("nombre"),
            )
        except (KeyError, TypeError, ValueError):
            # Cookie de una versión anterior o manipulada: se trata como anónima
            return None

    def to_session(self):
        return asdict(self)


def normalize_roles(roles):
    """Acepta un rol suelto o una colección y devuelve un frozenset validado."""
    if isinstance(roles, str):
        roles = (roles,)
    normalized = frozenset(roles)
    if not normalized:
        raise ValueError("Se requiere al menos un rol")
    unknown = normalized - ALL_ROLES
    if unknown:
        raise ValueError(f"Roles desconocidos: {', '.join(sorted(unknown))}")
    return normalized


def authorize(principal, roles):
    if principal is None:
        return Decision.DENY_UNAUTHENTICATED
    if principal.tipo not in roles:
        return Decision.DENY_FORBIDDEN
    return Decision.ALLOW


def authorize_owner(principal, roles, owner_id):
    """Como `authorize`, pero un paciente solo accede a recursos propios."""
    decision = authorize(principal, roles)
    if decision is not Decision.ALLOW:
        return decision
    if principal.tipo == "paciente" and owner_id != principal.id:
        return Decision.DENY_FORBIDDEN
    return Decision.ALLOW


def current_principal():
    return g.get("principal")


def deny_response(decision, principal, roles, api=False):
    """Traduce una denegación a la respuesta HTTP correspondiente."""
    if decision is Decision.DENY_UNAUTHENTICATED:
        if api:
            return jsonify({"error": "No autenticado"}), 401
        return redirect(LOGIN_URL)
    if api:
        return jsonify({
            "error": "No tienes permisos para acceder a este recurso",
            "rol": principal.tipo,
            "roles_permitidos": sorted(roles),
        }), 403
    return render_access_denied(principal, roles)


def role_required(roles=ALL_ROLES, api=False):
    """Decorator para rutas protegidas por rol."""
    allowed = normalize_roles(roles)

    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            principal = current_principal()
            decision = authorize(principal, allowed)
            if decision is not Decision.ALLOW:
                return deny_response(decision, principal, allowed, api=api)
            return f(principal, *args, **kwargs)
        return wrapper
    return decorator
