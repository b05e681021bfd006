from shadowplay.cli.app import app

app()
