from termchat_cli.main import main

raise SystemExit(main())
