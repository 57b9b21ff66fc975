"""CLI interface for Search Rebuilder."""

import importlib

import click

# Map command names to their module:attribute for lazy import
_COMMANDS = {
    "rebuild": "search_rebuilder.cli.rebuild:rebuild",
    "index": "search_rebuilder.cli.index:index",
    "serve": "search_rebuilder.cli.serve:serve",
}


class LazyGroup(click.Group):
    """
    Lazy loading of CLI commands to avoid hard dependencies at top level.

    Each command module is only imported when the command is invoked, so
    ``serve`` does not pull in boto3 and ``index`` does not pull in FastAPI.
    """

    def list_commands(self, ctx):
        # Keep stable ordering for help output
        return list(_COMMANDS.keys())

    def get_command(self, ctx, name):
        target = _COMMANDS.get(name)
        if not target:
            return None
        module_path, attr = target.split(":", 1)
        mod = importlib.import_module(module_path)
        return getattr(mod, attr)


@click.command(cls=LazyGroup)
def main():
    """Search Rebuilder CLI."""
    pass


if __name__ == "__main__":
    main()
