from bluos_listenbrainz.main import main

main()
