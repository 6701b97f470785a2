from autoshot.main import main

raise SystemExit(main())
