from pethub import create_app

app = create_app()
