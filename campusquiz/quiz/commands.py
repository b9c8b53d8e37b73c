"""
Maintenance commands, run next to `flask db`:

    flask quiz sweep [--quiz-id N]
    flask quiz evaluate [--quiz-id N]
"""
import click
from flask.cli import AppGroup

from campusquiz.quiz import service

quiz_cli = AppGroup('quiz', help="Quiz engine maintenance.")


@quiz_cli.command('sweep')
@click.option('--quiz-id', type=int, default=None, help="Only sweep this quiz.")
def sweep_command(quiz_id):
    """Submit every running attempt whose deadline has passed."""
    swept = service.sweep_overdue_submissions(quiz_id=quiz_id)
    click.echo(f"Submitted {swept} overdue attempt(s).")


@quiz_cli.command('evaluate')
@click.option('--quiz-id', type=int, default=None, help="Only evaluate this quiz.")
def evaluate_command(quiz_id):
    """Score every submitted attempt that has not been evaluated yet."""
    evaluated = service.evaluate_pending(quiz_id=quiz_id)
    click.echo(f"Evaluated {evaluated} submission(s).")
