from biomedico import db, trials
from biomedico.models import EnsayoClinico


def _crear(client, **kwargs):
    payload = {"titulo": "Ensayo A", "description": "Fase II", "fecha_inicio": "2025-01-15"}
    payload.update(kwargs)
    return client.post("/api/ensayos", json=payload)


def test_medico_crea_ensayo(app, client, login_as):
    principal = login_as("doctor")
    response = _crear(client)
    assert response.status_code == 201
    ensayo_id = response.get_json()["id"]

    with app.app_context():
        ensayo = db.session.get(EnsayoClinico, ensayo_id)
        assert ensayo.estado == "activo"
        assert ensayo.usuario_id == principal["id"]


def test_crear_sin_titulo(client, login_as):
    login_as("admin")
    response = client.post("/api/ensayos", json={"description": "sin título"})
    assert response.status_code == 400


def test_crear_con_titulo_no_texto(client, login_as):
    login_as("admin")
    response = client.post("/api/ensayos", json={"titulo": 123})
    assert response.status_code == 400
    assert response.get_json()["error"] == "El título es obligatorio"


def test_crear_con_cuerpo_que_no_es_objeto(client, login_as):
    login_as("admin")
    response = client.post("/api/ensayos", json=["Ensayo A"])
    assert response.status_code == 400
    assert response.get_json()["error"] == "Cuerpo de la petición inválido"


def test_crear_con_fecha_invalida(client, login_as):
    login_as("admin")
    response = _crear(client, fecha_inicio="15/01/2025")
    assert response.status_code == 400


def test_investigador_lee_pero_no_crea(client, login_as):
    login_as("doctor")
    _crear(client, titulo="Ensayo visible")

    login_as("invest")
    assert _crear(client).status_code == 403

    response = client.get("/api/ensayos")
    assert response.status_code == 200
    ensayos = response.get_json()
    assert [e["titulo"] for e in ensayos] == ["Ensayo visible"]
    assert ensayos[0]["creado_por"] == "doctor"


def test_actualizar_ensayo(app, client, login_as):
    login_as("doctor")
    ensayo_id = _crear(client).get_json()["id"]

    response = client.put(f"/api/ensayos/{ensayo_id}", json={"estado": "completado", "fecha_fin": "2025-06-30"})
    assert response.status_code == 200
    with app.app_context():
        ensayo = db.session.get(EnsayoClinico, ensayo_id)
        assert ensayo.estado == "completado"
        assert ensayo.titulo == "Ensayo A"
        assert ensayo.fecha_fin.isoformat() == "2025-06-30"


def test_actualizar_con_titulo_no_texto(app, client, login_as):
    login_as("doctor")
    ensayo_id = _crear(client).get_json()["id"]

    assert client.put(f"/api/ensayos/{ensayo_id}", json={"titulo": 5}).status_code == 400
    assert client.put(f"/api/ensayos/{ensayo_id}", json="texto").status_code == 400
    with app.app_context():
        assert db.session.get(EnsayoClinico, ensayo_id).titulo == "Ensayo A"


def test_actualizar_inexistente(client, login_as):
    login_as("admin")
    assert client.put("/api/ensayos/999", json={"estado": "x"}).status_code == 404


def test_solo_admin_elimina(app, client, login_as):
    login_as("doctor")
    ensayo_id = _crear(client).get_json()["id"]
    assert client.delete(f"/api/ensayos/{ensayo_id}").status_code == 403

    login_as("admin")
    assert client.delete(f"/api/ensayos/{ensayo_id}").status_code == 200
    assert client.delete(f"/api/ensayos/{ensayo_id}").status_code == 404
    with app.app_context():
        assert db.session.get(EnsayoClinico, ensayo_id) is None


def test_vista_html_de_ensayos(client, login_as):
    login_as("doctor")
    _crear(client, titulo="Ensayo Cardio")

    login_as("invest")
    response = client.get("/ensayos")
    assert response.status_code == 200
    body = response.get_data(as_text=True)
    assert "Ensayo Cardio" in body
    assert "ACTIVO" in body


def test_vista_html_prohibida_para_paciente(client, login_as):
    login_as("paciente")
    response = client.get("/ensayos")
    assert response.status_code == 403
    assert "Acceso Denegado" in response.get_data(as_text=True)


def test_error_inesperado_responde_json(app, client, login_as, monkeypatch):
    app.config["PROPAGATE_EXCEPTIONS"] = False
    login_as("admin")

    def boom():
        raise RuntimeError("listado roto")

    monkeypatch.setattr(trials, "_listado", boom)

    response = client.get("/api/ensayos")
    assert response.status_code == 500
    assert response.get_json() == {"error": "Error del sistema", "details": "listado roto"}

    response = client.get("/ensayos")
    assert response.status_code == 500
    assert "Error del Sistema" in response.get_data(as_text=True)
