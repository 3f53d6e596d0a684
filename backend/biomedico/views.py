from dataclasses import dataclass
from flask import render_template

HOME_URL = "/index.html"


@dataclass(frozen=True)
class Notice:
    title: str
    message: str
    redirect_url: str = HOME_URL
    button_text: str = "Volver al Inicio"


def render_notice(notice: Notice, status: int = 200):
    return render_template("mensaje.html", notice=notice), status


def render_access_denied(principal, roles):
    return render_template(
        "acceso_denegado.html",
        rol=principal.tipo,
        roles_permitidos=sorted(roles),
        home_url=HOME_URL,
    ), 403


def truncate(text, length=50):
    if text is None:
        return ""
    return text if len(text) <= length else text[:length] + "..."


def estado_class(estado):
    if estado == "activo":
        return "tech-btn-accent"
    if estado == "completado":
        return "tech-btn-primary"
    return "tech-btn-secondary"
