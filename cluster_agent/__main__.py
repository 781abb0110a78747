import sys

from cluster_agent.main import main

sys.exit(main())
