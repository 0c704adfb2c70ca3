from notebridge.app import main

main()
