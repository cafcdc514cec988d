from partstracker.cli.main import main

raise SystemExit(main())
