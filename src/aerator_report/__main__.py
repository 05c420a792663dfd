from aerator_report import cli

cli.app()
