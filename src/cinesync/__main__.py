"""Allow ``python -m cinesync``."""

from cinesync.main import main

main()
