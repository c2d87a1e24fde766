import json
import os

import click
from flask import Flask, jsonify, request, g
from sqlalchemy import text
from werkzeug.exceptions import HTTPException

from swiftdrop.errors import OrderError
from swiftdrop.extensions import db, migrate, cors
from swiftdrop.models import User
from swiftdrop.segments.common import COORDINATOR_KEY
from swiftdrop.segments.segment_cash import cash_bp
from swiftdrop.segments.segment_commission_reports import reports_bp
from swiftdrop.segments.segment_orders import orders_bp
from swiftdrop.segments.segment_protection import protection_bp
from swiftdrop.segments.segment_settings import settings_bp
from swiftdrop.services.orders import OrderCoordinator
from swiftdrop.utils.observability import init_sentry, install_request_observers


def _env_int(name: str, default: int, *, minimum: int = 1, maximum: int = 100000) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        value = int(raw) if raw else int(default)
    except ValueError:
        value = int(default)
    return max(minimum, min(value, maximum))


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _trace_payload(payload: dict) -> dict:
    rid = (getattr(g, "request_id", "") or "").strip()
    if rid:
        payload["trace_id"] = rid
    return payload


def create_app(coordinator: OrderCoordinator | None = None):
    app = Flask(__name__)

    env = (os.getenv("SWIFTDROP_ENV") or os.getenv("FLASK_ENV") or "dev").strip().lower()
    is_prod = env in ("prod", "production")
    if is_prod and not (os.getenv("SECRET_KEY") or "").strip():
        raise RuntimeError("SECRET_KEY must be set in production")

    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "dev-secret")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["JSON_SORT_KEYS"] = False

    database_url = os.getenv("SQLALCHEMY_DATABASE_URI") or os.getenv("DATABASE_URL")
    if not database_url:
        if is_prod:
            raise RuntimeError("DATABASE_URL (or SQLALCHEMY_DATABASE_URI) must be set in production")
        instance_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "instance"))
        os.makedirs(instance_dir, exist_ok=True)
        database_url = f"sqlite:///{os.path.join(instance_dir, 'swiftdrop.db').replace(os.sep, '/')}"
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    app.config["SQLALCHEMY_DATABASE_URI"] = database_url

    engine_options = {"pool_pre_ping": True}
    if not database_url.startswith("sqlite://"):
        engine_options.update(
            {
                "pool_size": _env_int("DB_POOL_SIZE", 10, minimum=1, maximum=200),
                "max_overflow": _env_int("DB_MAX_OVERFLOW", 20, minimum=0, maximum=500),
                "pool_timeout": _env_int("DB_POOL_TIMEOUT_SECONDS", 30, minimum=1, maximum=300),
                "pool_recycle": _env_int("DB_POOL_RECYCLE_SECONDS", 1800, minimum=60, maximum=86400),
            }
        )
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options

    cors_origins = (os.getenv("CORS_ORIGINS") or "").strip()
    origins = [o.strip() for o in cors_origins.split(",") if o.strip()]
    if not origins and not is_prod:
        origins = ["*"]
    cors.init_app(app, resources={r"/api/*": {"origins": origins}})

    db.init_app(app)
    migrate.init_app(app, db)
    install_request_observers(app)
    init_sentry(app)

    if _env_bool("AUTO_CREATE_TABLES", default=not is_prod):
        with app.app_context():
            db.create_all()

    app.extensions[COORDINATOR_KEY] = coordinator or OrderCoordinator()

    @app.errorhandler(OrderError)
    def _api_order_error(error: OrderError):
        if error.http_status >= 500:
            app.logger.error("order_error code=%s path=%s", error.code, request.path)
        return jsonify(_trace_payload(error.to_dict())), int(error.http_status)

    @app.errorhandler(HTTPException)
    def _api_http_exception(error: HTTPException):
        if not request.path.startswith("/api/"):
            return error
        payload = {
            "ok": False,
            "error": {"code": error.name.upper().replace(" ", "_"), "kind": "http"},
            "message": error.description or error.name,
            "status": int(error.code or 500),
        }
        return jsonify(_trace_payload(payload)), int(error.code or 500)

    @app.errorhandler(Exception)
    def _api_unhandled_exception(error: Exception):
        app.logger.exception("unhandled_exception path=%s", request.path)
        db.session.rollback()
        payload = {
            "ok": False,
            "error": {"code": "INTERNAL_SERVER_ERROR", "kind": "error"},
            "message": "Internal server error",
            "status": 500,
        }
        return jsonify(_trace_payload(payload)), 500

    app.register_blueprint(orders_bp)
    app.register_blueprint(cash_bp)
    app.register_blueprint(protection_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(settings_bp)

    @app.get("/api/health")
    def health():
        db_state = "ok"
        try:
            with db.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            app.logger.warning("health_db_failed err=%s", e)
            db_state = "fail"
        return jsonify({"ok": db_state == "ok", "service": "swiftdrop-orders", "env": env, "db": db_state})

    @app.cli.command("reconcile-ledger")
    @click.option("--scope", type=click.Choice(["wallet", "cash", "all"]), default="all")
    @click.option("--persist", is_flag=True, help="Store the report in reconciliation_reports.")
    def reconcile_ledger(scope: str, persist: bool):
        """Recompute wallet and cash ledgers from their rows and report drift."""
        from swiftdrop.services.reconciliation_service import (
            persist_report,
            reconcile_cash_ledger,
            recompute_wallet_balances,
        )

        summaries = []
        if scope in ("wallet", "all"):
            summaries.append(recompute_wallet_balances())
        if scope in ("cash", "all"):
            summaries.append(reconcile_cash_ledger())
        drift = 0
        for summary in summaries:
            if persist:
                summary["report_id"] = int(persist_report(summary).id)
            drift += int(summary.get("drift_count") or 0)
            click.echo(json.dumps(summary, indent=2))
        if drift:
            raise SystemExit(2)

    @app.cli.command("run-order-jobs")
    @click.option("--job", type=click.Choice(["auto-release", "stale", "ready", "all"]), default="all")
    def run_order_jobs(job: str):
        """Run the scheduled order jobs once, in-process."""
        from swiftdrop.jobs import order_jobs

        coordinator = app.extensions[COORDINATOR_KEY]
        if job == "auto-release":
            result = order_jobs.process_auto_releases(coordinator=coordinator)
        elif job == "stale":
            result = order_jobs.cancel_stale_orders(coordinator=coordinator)
        elif job == "ready":
            result = order_jobs.send_ready_notifications(coordinator=coordinator)
        else:
            result = order_jobs.run_all(coordinator=coordinator)
        click.echo(json.dumps(result, indent=2))

    @app.cli.command("bootstrap-admin")
    def bootstrap_admin():
        """Create or promote the platform admin, which also owns the platform wallet."""
        allow = _env_bool("ALLOW_ADMIN_BOOTSTRAP")
        if is_prod and not allow:
            raise click.ClickException("Admin bootstrap disabled. Set ALLOW_ADMIN_BOOTSTRAP=1.")
        email = (os.getenv("ADMIN_EMAIL") or "").strip().lower()
        password = (os.getenv("ADMIN_PASSWORD") or "").strip()
        if not email or not password:
            raise click.ClickException("ADMIN_EMAIL and ADMIN_PASSWORD must be set.")

        u = User.query.filter_by(email=email).first()
        if u is None:
            u = User(name=email.split("@")[0], email=email, role="admin")
            db.session.add(u)
        u.role = "admin"
        u.set_password(password)
        db.session.commit()
        click.echo(f"admin_bootstrap_ok {u.email} id={u.id}")

    return app
