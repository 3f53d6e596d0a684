from biomedico import create_app

app = create_app()


if __name__ == '__main__':
    # Crea las tablas y el servidor en modo debug (solo desarrollo)
    from biomedico import db

    with app.app_context():
        db.create_all()

    app.run(debug=True)
