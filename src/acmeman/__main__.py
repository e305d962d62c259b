"""Allow ``python -m acmeman``."""

from acmeman.cli.main import main

main()
