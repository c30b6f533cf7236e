from abalone_pipeline.pipeline import main

raise SystemExit(main())
