from metricstore.cli import app

app()
