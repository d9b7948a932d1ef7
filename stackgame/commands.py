import click
from flask.cli import with_appcontext
from stackgame.services.leaderboard import top_entries, MAX_ENTRIES


@click.command('top-scores')
@click.option('--limit', default=10, show_default=True,
              type=click.IntRange(1, MAX_ENTRIES))
@with_appcontext
def top_scores_command(limit):
    """Print the leaderboard."""
    entries = top_entries(limit)
    if not entries:
        click.echo("No players yet.")
        return
    for entry in entries:
        click.echo(f"{entry['rank']:>3}. {entry['name']:<24} {entry['score']:>8}  xp {entry['xp']}")


def register_commands(app):
    app.cli.add_command(top_scores_command)
