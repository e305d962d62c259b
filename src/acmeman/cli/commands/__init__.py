"""CLI subcommand handlers, imported lazily by :mod:`acmeman.cli.main`."""
