import sys

from answer_engine.cli import main

sys.exit(main())
