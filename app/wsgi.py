from app.designreview import create_app

app = create_app()
