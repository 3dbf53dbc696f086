import sys

from swarm_loopguard.cli import main

sys.exit(main())
