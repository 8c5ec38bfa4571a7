import click
from flask.cli import with_appcontext
from labinsight.extensions import db
from labinsight.models.user_models import User


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create every table of the portal schema."""
    db.create_all()
    click.echo("Database initialized successfully!")


@click.command('create-admin')
@click.option('--name', prompt=True, help='Display name of the administrator')
@click.option('--email', prompt=True, help='Login email of the administrator')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_admin_command(name, email, password):
    """Provision an administrator account."""
    email = User.normalize_email(email)
    if User.find_by_email(email):
        raise click.ClickException(f"An account already exists for {email}")

    admin = User(name=name.strip(), email=email, role='admin', auth_provider='local')
    try:
        admin.set_password(password)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='--password') from e

    db.session.add(admin)
    db.session.commit()
    click.echo(f"Administrator {email} created.")


def register_commands(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(create_admin_command)
