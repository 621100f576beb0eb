from pdv_sync.entrypoints.main import main

raise SystemExit(main())
