from ocigate.cli.app import main

main()
