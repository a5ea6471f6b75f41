from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=flask_app.config.get('CORS_ORIGINS', []))

    from studyroom.errors import register_error_handlers
    register_error_handlers(flask_app)

    # Import and register blueprints here
    from studyroom.api.system import system
    flask_app.register_blueprint(system)

    from studyroom.api.rooms import rooms
    # Mounted where the frontend API client expects it
    flask_app.register_blueprint(rooms, url_prefix='/multiplayer/rooms')

    from studyroom.services.rooms import RoomService
    flask_app.extensions['room_service'] = RoomService.from_config(flask_app.config)

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the database tables."""
        import studyroom.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            click.echo('Database has been reset!')

    @click.command('purge-expired-rooms')
    def purge_expired_rooms_command():
        """Deletes rooms whose expiry time has passed."""
        with flask_app.app_context():
            removed = flask_app.extensions['room_service'].purge_expired()
            click.echo(f'Removed {removed} expired room(s).')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(purge_expired_rooms_command)

    return flask_app
