import pytest
from biomedico.guard import (
    ALL_ROLES, Decision, Principal, authorize, authorize_owner, normalize_roles,
)


def principal(tipo, id=1):
    return Principal(id=id, username=f"user{id}", tipo=tipo, nombre="Nombre")


def test_sin_principal_es_no_autenticado():
    assert authorize(None, ALL_ROLES) is Decision.DENY_UNAUTHENTICATED


@pytest.mark.parametrize("tipo", sorted(ALL_ROLES))
def test_rol_incluido_permite(tipo):
    assert authorize(principal(tipo), frozenset({tipo})) is Decision.ALLOW


def test_rol_no_incluido_es_prohibido():
    roles = normalize_roles(["admin", "medico"])
    assert authorize(principal("investigador"), roles) is Decision.DENY_FORBIDDEN
    assert authorize(principal("paciente"), roles) is Decision.DENY_FORBIDDEN


def test_normalize_roles_acepta_rol_suelto_y_colecciones():
    assert normalize_roles("admin") == frozenset({"admin"})
    assert normalize_roles(["admin", "medico", "admin"]) == frozenset({"admin", "medico"})
    assert normalize_roles(("investigador",)) == frozenset({"investigador"})


def test_normalize_roles_rechaza_desconocidos_y_vacios():
    with pytest.raises(ValueError):
        normalize_roles(["admin", "enfermero"])
    with pytest.raises(ValueError):
        normalize_roles([])


def test_paciente_solo_accede_a_lo_propio():
    p = principal("paciente", id=7)
    assert authorize_owner(p, ALL_ROLES, 7) is Decision.ALLOW
    assert authorize_owner(p, ALL_ROLES, 8) is Decision.DENY_FORBIDDEN
    assert authorize_owner(p, ALL_ROLES, None) is Decision.DENY_FORBIDDEN


def test_propiedad_no_aplica_a_otros_roles():
    assert authorize_owner(principal("medico", id=2), ALL_ROLES, 99) is Decision.ALLOW


def test_propiedad_respeta_el_rol():
    p = principal("paciente", id=7)
    assert authorize_owner(p, frozenset({"medico"}), 7) is Decision.DENY_FORBIDDEN
    assert authorize_owner(None, ALL_ROLES, 7) is Decision.DENY_UNAUTHENTICATED


def test_principal_ida_y_vuelta_por_sesion():
    p = principal("admin", id=3)
    assert Principal.from_session(p.to_session()) == p


def test_sesion_invalida_es_anonima():
    assert Principal.from_session(None) is None
    assert Principal.from_session({"username": "x"}) is None
    assert Principal.from_session({"id": "abc", "username": "x", "tipo": "admin"}) is None


def test_ruta_html_sin_sesion_redirige_a_login(client):
    response = client.get("/ver-pacientes", follow_redirects=False)
    assert response.status_code == 302
    assert "/login.html" in response.headers["Location"]


def test_ruta_html_con_rol_incorrecto_muestra_aviso(client, login_as):
    login_as("invest")
    response = client.get("/ver-pacientes")
    assert response.status_code == 403
    body = response.get_data(as_text=True)
    assert "Acceso Denegado" in body
    assert "investigador" in body
    assert "admin, medico" in body


def test_ruta_json_sin_sesion_devuelve_401(client):
    response = client.get("/api/ensayos")
    assert response.status_code == 401
    assert response.get_json()["error"]


def test_ruta_json_con_rol_incorrecto_devuelve_403(client, login_as):
    login_as("paciente")
    response = client.get("/api/ensayos")
    assert response.status_code == 403
    data = response.get_json()
    assert data["rol"] == "paciente"
    assert data["roles_permitidos"] == ["admin", "investigador", "medico"]
