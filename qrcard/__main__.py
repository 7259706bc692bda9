from qrcard.cli import main

main()
