from provision_ready.cli import main

main()
