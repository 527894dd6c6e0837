from datetime import date

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from database import Base
from mailer import Mailer, OutgoingEmail
from models import Notification, NotificationType, OperationType
from schemas import OperationIn, RegisterIn, ReminderIn
from services import (
    OperationService,
    ProfileService,
    ReminderService,
    generate_monthly_summaries,
    send_reminder_emails,
)


class RecordingMailer(Mailer):
    def __init__(self) -> None:
        self.sent: list[OutgoingEmail] = []

    def send(self, message: OutgoingEmail) -> None:
        self.sent.append(message)


def _session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def _register(session: Session, email: str):
    return ProfileService(session).register(
        RegisterIn(email=email, password="secret123", full_name=email.split("@")[0])
    )


def test_monthly_summary_notifies_active_users_once() -> None:
    with _session() as session:
        ana = _register(session, "ana@example.com")
        bob = _register(session, "bob@example.com")
        _register(session, "idle@example.com")
        bob.in_app_monthly_summary = False
        session.commit()

        for user in (ana, bob):
            ops = OperationService(session, user.id)
            ops.create(
                OperationIn(
                    type=OperationType.income,
                    amount_cents=150_000,
                    concept="Salary",
                    operation_date=date(2025, 2, 1),
                )
            )
            ops.create(
                OperationIn(
                    type=OperationType.expense,
                    amount_cents=50_050,
                    concept="Rent",
                    operation_date=date(2025, 2, 3),
                )
            )

        result = generate_monthly_summaries(session, today=date(2025, 3, 1))
        assert result["created"] == 1
        assert result["total_users"] == 2
        assert result["errors"] == []

        notifications = session.scalars(select(Notification)).all()
        assert len(notifications) == 1
        notification = notifications[0]
        assert notification.user_id == ana.id
        assert notification.type == NotificationType.monthly_summary
        assert notification.title == "Summary for February 2025"
        assert notification.message == (
            "Income: 1.500,00 € | Expenses: 500,50 € | "
            "Savings: 0,00 € | Balance: +999,50 €"
        )

        again = generate_monthly_summaries(session, today=date(2025, 3, 15))
        assert again["created"] == 0
        assert len(session.scalars(select(Notification)).all()) == 1


def test_reminder_emails_group_by_user() -> None:
    with _session() as session:
        ana = _register(session, "ana@example.com")
        bob = _register(session, "bob@example.com")
        quiet = _register(session, "quiet@example.com")
        quiet.email_reminder_alerts = False
        session.commit()

        tomorrow = date(2025, 3, 11)
        ana_reminders = ReminderService(session, ana.id)
        ana_reminders.create(
            ReminderIn(concept="Rent", amount_cents=80_000, reminder_date=tomorrow)
        )
        ana_reminders.create(
            ReminderIn(concept="Gym", amount_cents=3_500, reminder_date=tomorrow)
        )
        done = ana_reminders.create(
            ReminderIn(concept="Phone", amount_cents=2_000, reminder_date=tomorrow)
        )
        ana_reminders.complete(done.id)
        ana_reminders.create(
            ReminderIn(concept="Later", amount_cents=1_000, reminder_date=date(2025, 3, 20))
        )
        ReminderService(session, bob.id).create(
            ReminderIn(concept="Insurance", amount_cents=12_000, reminder_date=tomorrow)
        )
        ReminderService(session, quiet.id).create(
            ReminderIn(concept="Hidden", amount_cents=1_000, reminder_date=tomorrow)
        )

        mailer = RecordingMailer()
        result = send_reminder_emails(session, mailer, today=date(2025, 3, 10))

        assert result == {"sent": 2, "errors": []}
        by_recipient = {m.to: m for m in mailer.sent}
        assert set(by_recipient) == {"ana@example.com", "bob@example.com"}
        assert by_recipient["ana@example.com"].subject == (
            "You have 2 payments due tomorrow"
        )
        assert by_recipient["bob@example.com"].subject == (
            "Reminder: Insurance is due tomorrow"
        )
        html = by_recipient["ana@example.com"].html
        assert "Rent" in html
        assert "Gym" in html
        assert "Phone" not in html
        assert "835,00 €" in html


def test_reminder_email_failures_are_reported() -> None:
    class BrokenMailer(Mailer):
        def send(self, message: OutgoingEmail) -> None:
            raise ConnectionError("smtp down")

    with _session() as session:
        ana = _register(session, "ana@example.com")
        ReminderService(session, ana.id).create(
            ReminderIn(concept="Rent", amount_cents=80_000, reminder_date=date(2025, 3, 11))
        )
        result = send_reminder_emails(session, BrokenMailer(), today=date(2025, 3, 10))
        assert result["sent"] == 0
        assert result["errors"] == [f"User {ana.id}: smtp down"]
