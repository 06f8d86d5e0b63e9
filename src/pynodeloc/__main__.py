from pynodeloc.cli import main

raise SystemExit(main())
