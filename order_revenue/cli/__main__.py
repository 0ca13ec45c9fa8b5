from order_revenue.cli.app import main

raise SystemExit(main())
