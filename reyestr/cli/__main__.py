from reyestr.cli.main import app

app(prog_name="reyestr")
