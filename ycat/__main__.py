from ycat.cli import main

raise SystemExit(main())
