from i18n_native_host.main import main

raise SystemExit(main())
