from udpecho.cli import main

raise SystemExit(main())
