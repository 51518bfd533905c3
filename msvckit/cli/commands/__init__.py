"""msvckit subcommand implementations; each module exposes run(args) -> int."""
