import sys

from mosaic_stream.cli.main import main

sys.exit(main())
