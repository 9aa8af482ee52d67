from blockflow.cli.app import main

main()
