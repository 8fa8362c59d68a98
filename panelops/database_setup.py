import logging

import click
from flask import current_app
from sqlalchemy import inspect as sql_inspect, text

from panelops import db, bcrypt
from panelops.models import Operator
from panelops.utils.settings import seed_default_settings

logger = logging.getLogger(__name__)


def check_database_connection():
    """Check if database connection is working"""
    try:
        db.session.execute(text('SELECT 1'))
        return True
    except Exception:
        logger.exception("Database connection failed")
        return False


def get_existing_tables():
    """Get list of existing tables in the database"""
    try:
        return sql_inspect(db.engine).get_table_names()
    except Exception:
        logger.exception("Error getting existing tables")
        return []


def get_missing_tables():
    existing = set(get_existing_tables())
    return [name for name in db.metadata.tables if name not in existing]


def initialize_database():
    """Create missing tables and seed default settings."""
    logger.info("Initializing database setup (%s)", current_app.config['SQLALCHEMY_DATABASE_URI'])

    if not check_database_connection():
        return False

    missing = get_missing_tables()
    if missing:
        logger.info("Found %d missing tables, creating: %s", len(missing), ', '.join(sorted(missing)))
        db.create_all()
    else:
        logger.info("All model tables exist in the database")

    try:
        added = seed_default_settings()
        if added:
            logger.info("Seeded %d default settings", added)
    except Exception:
        db.session.rollback()
        logger.exception("Could not seed default settings")
        return False

    logger.info("Database setup complete")
    return True


def create_operator(name, email, password):
    if Operator.query.filter_by(email=email).first():
        raise ValueError(f'Operator {email} already exists')
    operator = Operator(
        name=name,
        email=email,
        password_hash=bcrypt.generate_password_hash(password).decode('utf-8'),
    )
    db.session.add(operator)
    db.session.commit()
    logger.info("Created operator %s", email)
    return operator


# Flask CLI commands registration
def register_db_commands(app):
    """Register database commands with Flask CLI"""

    @app.cli.command('init_db')
    def init_db_command():
        """Creates missing tables and seeds default settings."""
        initialize_database()

    @app.cli.command('reset_db')
    @click.confirmation_option(prompt='This will delete all data. Are you sure?')
    def reset_db_command():
        """Drops all tables and re-initializes the database."""
        logger.warning("Dropping all tables")
        db.drop_all()
        initialize_database()
        click.echo("Database has been reset.")

    @app.cli.command('create_operator')
    @click.argument('email')
    @click.option('--name', default='Operator', help='Display name.')
    @click.password_option()
    def create_operator_command(email, name, password):
        """Creates the operator account used to log in to the API."""
        try:
            create_operator(name, email, password)
        except ValueError as e:
            raise click.ClickException(str(e))
        click.echo(f"Operator {email} created.")
