from chartmigrate.cli import main

main()
