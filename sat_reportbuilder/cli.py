import click
from flask import current_app
from flask.cli import with_appcontext

from .const import ReportStatus, UserRole, UserStatus
from .exceptions import SATError
from .models.report import Report, ReportStep
from .models.sqla import db

DEMO_PASSWORD = "Test123!"
DEMO_USERS = (
    ("admin@test.com", "System Administrator", UserRole.ADMIN),
    ("engineer@test.com", "John Engineer", UserRole.ENGINEER),
    ("tm@test.com", "Technical Manager", UserRole.TECHNICAL_MANAGER),
    ("pm@test.com", "Project Manager", UserRole.PROJECT_MANAGER),
)
DEMO_REPORT = {
    "title": "Sample SAT Report - Control System Validation",
    "project_ref": "PRJ-2025-001",
    "document_ref": "SAT-001",
    "revision": "1.0",
}


def echo_header(title):
    """
    Print a formatted header with title and underline.

    Args:
        title: Title text to display
    """
    click.echo(click.style(title, fg="green"))
    click.echo(click.style("-" * len(title), fg="green"))


def _reportbuilder():
    return current_app.extensions["reportbuilder"]


@click.group()
def sat():
    """SAT-ReportBuilder management commands."""


@sat.command("create-db")
@with_appcontext
def create_db():
    """Create all the tables and store the default settings."""
    _reportbuilder().create_db()
    click.echo(click.style("Database created", fg="green"))


@sat.command("create-admin")
@click.option("--email", prompt="Email", help="Administrator email")
@click.option("--full-name", prompt="Full name", help="Administrator full name")
@click.option(
    "--password",
    prompt="Password",
    hide_input=True,
    confirmation_prompt=True,
    help="Administrator password",
)
@with_appcontext
def create_admin(email, full_name, password):
    """
    Create an active ADMIN user.

    Args:
        email: Login email
        full_name: Display name
        password: Clear text password, stored hashed
    """
    try:
        user = _reportbuilder().sm.add_user(
            email=email, full_name=full_name, role=UserRole.ADMIN, password=password
        )
    except SATError as e:
        click.echo(click.style(f"Error creating admin user: {e.message}", fg="red"))
        raise SystemExit(1)
    click.echo(click.style(f"Admin User {user.email} created.", fg="green"))


@sat.command("approve-user")
@click.argument("email")
@click.option(
    "--role",
    type=click.Choice([role.value for role in UserRole]),
    default=None,
    help="Role to grant, defaults to the requested one",
)
@click.option(
    "--password",
    prompt="Password",
    hide_input=True,
    confirmation_prompt=True,
    help="Password the user will log in with",
)
@with_appcontext
def approve_user(email, role, password):
    """
    Activate a PENDING user.

    Args:
        email: Email of the user to approve
        role: Optional role override
        password: The password handed over to the user
    """
    sm = _reportbuilder().sm
    user = sm.find_user(email=email)
    if user is None:
        click.echo(click.style(f"User {email} not found", fg="red"))
        raise SystemExit(1)
    try:
        sm.approve_user(user, UserRole(role) if role else user.role, password)
    except SATError as e:
        click.echo(click.style(e.message, fg="red"))
        raise SystemExit(1)
    click.echo(click.style(f"User {user.email} approved as {user.role}", fg="green"))


@sat.command("reset-password")
@click.argument("email")
@click.option(
    "--password",
    prompt="New password",
    hide_input=True,
    confirmation_prompt=True,
    help="The new password",
)
@with_appcontext
def reset_password(email, password):
    """Reset the password of a user."""
    sm = _reportbuilder().sm
    user = sm.find_user(email=email)
    if user is None:
        click.echo(click.style(f"User {email} not found", fg="red"))
        raise SystemExit(1)
    sm.reset_password(user, password)
    click.echo(click.style("Password reset successfully!", fg="green"))


@sat.command("list-users")
@click.option(
    "--status",
    type=click.Choice([status.value for status in UserStatus]),
    default=None,
)
@with_appcontext
def list_users(status):
    """List users, newest first."""
    echo_header("Users")
    for user in _reportbuilder().sm.get_all_users(status=status):
        click.echo(f"{user.id}\t{user.email}\t{user.full_name}\t{user.role}\t{user.status}")


@sat.command("seed-demo")
@with_appcontext
def seed_demo():
    """Create the demo users, a sample draft report and the default settings."""
    reportbuilder = _reportbuilder()
    sm = reportbuilder.sm
    reportbuilder.create_db()

    echo_header("Demo users")
    users = {}
    for email, full_name, role in DEMO_USERS:
        user = sm.find_user(email=email)
        if user is None:
            user = sm.add_user(
                email=email, full_name=full_name, role=role, password=DEMO_PASSWORD
            )
        users[role] = user
        click.echo(f"- {email} / {DEMO_PASSWORD} ({role})")

    existing = (
        db.session.query(Report)
        .filter_by(
            document_ref=DEMO_REPORT["document_ref"], revision=DEMO_REPORT["revision"]
        )
        .one_or_none()
    )
    if existing is None:
        engineer = users[UserRole.ENGINEER]
        report = Report(
            status=ReportStatus.DRAFT,
            creator_id=engineer.id,
            tm_id=users[UserRole.TECHNICAL_MANAGER].id,
            pm_id=users[UserRole.PROJECT_MANAGER].id,
            **DEMO_REPORT,
        )
        report.steps = [
            ReportStep(
                step_name="document_info",
                data={
                    "title": DEMO_REPORT["title"],
                    "projectRef": DEMO_REPORT["project_ref"],
                    "documentRef": DEMO_REPORT["document_ref"],
                    "revision": DEMO_REPORT["revision"],
                    "date": "2025-01-27",
                    "preparedBy": engineer.full_name,
                },
            ),
            ReportStep(
                step_name="introduction_scope",
                data={
                    "introduction": (
                        "<p>This Site Acceptance Test document outlines the"
                        " comprehensive testing procedures for the industrial"
                        " control system implementation.</p>"
                    ),
                    "scope": (
                        "<p>The scope includes validation of all digital and"
                        " analog I/O modules, SCADA interfaces, and alarm"
                        " systems.</p>"
                    ),
                    "relatedDocuments": [
                        {"name": "System Design Document", "reference": "SDD-001"},
                        {"name": "I/O List", "reference": "IOL-001"},
                    ],
                },
            ),
        ]
        db.session.add(report)
        db.session.commit()
        click.echo(f"Sample report {report} created")
    click.echo(click.style("Database seeded successfully", fg="green"))
