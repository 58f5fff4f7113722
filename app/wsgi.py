from app.journalhub import create_app

app = create_app()
