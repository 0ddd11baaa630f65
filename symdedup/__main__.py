from symdedup.cli import main

raise SystemExit(main())
