import click
from dotenv import load_dotenv, find_dotenv

# Load environment variables immediately
load_dotenv(find_dotenv())

from .cli.base import apply_verbosity
from .cli.parse import parse
from .cli.series import series
from .cli.group import group
from .cli.feedback import feedback
from .cli.decay import decay
from .cli.patterns import patterns
from .cli.stats import stats
from .cli.seed import seed
from .cli.schedule import schedule


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v: INFO, -vv: DEBUG).")
def cli(verbose: int):
    """Anime grouping: series detection, ordering and pattern learning."""
    apply_verbosity(verbose)


cli.add_command(parse)
cli.add_command(series)
cli.add_command(group)
cli.add_command(feedback)
cli.add_command(decay)
cli.add_command(patterns)
cli.add_command(stats)
cli.add_command(seed)
cli.add_command(schedule)

if __name__ == "__main__":
    cli()
