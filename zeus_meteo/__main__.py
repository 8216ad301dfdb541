import sys

from zeus_meteo.main import main

sys.exit(main())
