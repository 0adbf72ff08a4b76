from jjdeck.cli import main

main()
