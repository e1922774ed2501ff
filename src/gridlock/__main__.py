from gridlock.cli import main

raise SystemExit(main())
