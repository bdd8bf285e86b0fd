from webapp_publish.cli import main

raise SystemExit(main())
