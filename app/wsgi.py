from app.robostaan import create_app

app = create_app()
