from hyperdrive_cli.cli import main

main()
