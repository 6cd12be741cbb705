from shopcore import create_app

app = create_app()
