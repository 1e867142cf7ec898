"""Allow ``python -m deployctl``."""

from deployctl.main import main

main()
