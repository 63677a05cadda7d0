import sys

from websii.api.run_api import main

sys.exit(main())
