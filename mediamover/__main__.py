"""Allow running as ``python -m mediamover``."""
import sys

from .cli import main

sys.exit(main())
