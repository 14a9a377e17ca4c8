from offcron.cli.app import app

app()
