from heritage.cli import cli

cli()
