from spreadsheet_consolidator import cli

if __name__ == "__main__":
    cli.app()
