from flask import Blueprint, render_template
from .models import Usuario
from .guard import role_required

admin_bp = Blueprint("admin", __name__)


@admin_bp.get("/ver-usuarios")
@role_required("admin")
def ver_usuarios(principal):
    usuarios = Usuario.query.order_by(Usuario.fecha_registro.desc(), Usuario.id.desc()).all()
    filas = [
        {
            "id": u.id,
            "username": u.username,
            "tipo": u.tipo_usuario,
            "nombre": u.nombre_completo or "No especificado",
            "email": u.email or "No tiene",
            "fecha_registro": u.fecha_registro.strftime("%d/%m/%Y") if u.fecha_registro else "",
        }
        for u in usuarios
    ]
    return render_template("usuarios.html", principal=principal, usuarios=filas)
