"""Credit Check-in Service - Application Factory."""
import logging
import os
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["2000 per day", "500 per hour"]
)

def create_app(config_name: str = None) -> Flask:
    """Application factory pattern."""
    app = Flask(__name__)

    # Load configuration
    from config import get_config
    config_class = get_config(config_name)
    app.config.from_object(config_class)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)

    # Configure CORS
    CORS(app, origins=app.config.get('CORS_ORIGINS', ["*"]))

    # Setup logging
    setup_logging(app)

    # Signing keys are read once, here
    setup_token_codec(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Setup database
    setup_database(app)

    # Add CLI commands
    register_commands(app)

    # Add health check
    @app.route('/health')
    def health_check():
        return jsonify({
            'status': 'healthy',
            'service': 'Credit Check-in Service',
            'version': '1.0.0'
        })

    return app

def setup_token_codec(app: Flask) -> None:
    """Build the process-wide token codec from configuration."""
    from checkin.services.token_codec import TokenCodec

    app.extensions['token_codec'] = TokenCodec.from_config(app.config)

def register_blueprints(app: Flask) -> None:
    """Register all application blueprints."""
    from checkin.api.sessions import sessions_bp
    from checkin.api.tokens import tokens_bp
    from checkin.api.attendance import attendance_bp
    from checkin.api.students import students_bp

    app.register_blueprint(sessions_bp, url_prefix='/sessions')
    app.register_blueprint(tokens_bp, url_prefix='/tokens')
    app.register_blueprint(attendance_bp, url_prefix='/attendance')
    app.register_blueprint(students_bp, url_prefix='/students')

def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""
    from checkin.utils.helpers import handle_error, error_response
    from checkin.utils.errors import CheckinError
    from werkzeug.exceptions import HTTPException

    @app.errorhandler(CheckinError)
    def checkin_error(error):
        if error.status_code >= 500:
            db.session.rollback()
        return error_response(error.message, error.status_code, code=error.kind.value)

    @app.errorhandler(400)
    def bad_request(error):
        return handle_error(error, 400)

    @app.errorhandler(401)
    def unauthorized(error):
        return handle_error(error, 401)

    @app.errorhandler(403)
    def forbidden(error):
        return handle_error(error, 403)

    @app.errorhandler(404)
    def not_found(error):
        return handle_error(error, 404)

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return handle_error(error, 500)

    @app.errorhandler(HTTPException)
    def handle_exception(e):
        return handle_error(e, e.code)

    # JWT error handlers
    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return error_response('Token has expired', 401, code='unauthorized')

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        return error_response('Invalid token', 401, code='unauthorized')

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        return error_response('Authorization token required', 401, code='unauthorized')

def setup_logging(app: Flask) -> None:
    """Setup application logging."""
    level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO)
    logging.getLogger('checkin').setLevel(level)

    if not app.debug and not app.testing:
        if not os.path.exists('logs'):
            os.mkdir('logs')

        file_handler = logging.FileHandler('logs/app.log')
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        logging.getLogger('checkin').addHandler(file_handler)

        app.logger.setLevel(logging.INFO)
        app.logger.info('Credit Check-in Service startup')

def setup_database(app: Flask) -> None:
    """Setup database connections."""
    with app.app_context():
        # Import all models so metadata is complete
        from checkin.models import (
            User, UserRole,
            Student, Group, GroupEnrollment,
            GroupSession, SessionStatus,
            IssuedToken, AttendanceRecord, Payment
        )

def register_commands(app: Flask) -> None:
    """Register CLI commands."""
    import click

    @app.cli.command('init-db')
    @click.option('--drop', is_flag=True, help='Drop existing tables')
    def init_db(drop):
        """Initialize the database."""
        if drop:
            db.drop_all()
            click.echo('Dropped all tables.')

        db.create_all()
        click.echo('Created all tables.')

        from checkin.models.user import User, UserRole

        admin = User.query.filter_by(email='admin@center.local').first()
        if not admin:
            admin = User(
                email='admin@center.local',
                name='Center Admin',
                role=UserRole.ADMIN
            )
            db.session.add(admin)
            db.session.commit()
            click.echo('Created admin user: admin@center.local')

    @app.cli.command('seed-db')
    def seed_db():
        """Seed database with test data."""
        from checkin.services.seed_service import SeedService

        SeedService.seed_all()
        click.echo('Database seeded successfully!')

    @app.cli.command('issue-access-token')
    @click.argument('email')
    def issue_access_token(email):
        """Print a bearer token for an existing user."""
        from flask_jwt_extended import create_access_token
        from checkin.models.user import User

        user = User.query.filter_by(email=email.lower().strip()).first()
        if not user or not user.is_active:
            raise click.ClickException(f'No active user with email {email}')

        click.echo(create_access_token(identity=str(user.id)))

    @app.cli.command('close-expired-sessions')
    def close_expired_sessions():
        """Mark active sessions whose window has elapsed as completed."""
        from checkin.services.session_service import SessionService

        closed = SessionService.complete_expired_sessions()
        click.echo(f'Completed {closed} session(s).')

    @app.cli.command('reconcile-ledger')
    def reconcile_ledger():
        """Verify every student balance against its ledger entries."""
        from checkin.models.student import Student
        from checkin.services.credit_ledger import CreditLedger

        ledger = CreditLedger()
        diverged = 0
        for student in Student.query.order_by(Student.id).all():
            report = ledger.reconcile(student.id)
            if not report.consistent:
                diverged += 1
                click.echo(
                    f'Student {student.id}: balance={report.balance} '
                    f'purchased={report.total_purchased} '
                    f'payments={report.payments_total} '
                    f'deductions={report.deductions_total}'
                )

        if diverged:
            raise click.ClickException(f'{diverged} student ledger(s) diverged')
        click.echo('All student ledgers reconcile.')
