import datetime
import logging

from dateutil.relativedelta import relativedelta
from flask_mail import Message

from smartpark import reports
from smartpark.app import mail
from smartpark.celery_worker import celery
from smartpark.database import db
from smartpark.models import User
from smartpark.timeutils import utcnow

logger = logging.getLogger(__name__)


def _report_recipients():
    # Admins without an e-mail address simply do not get the report
    admins = User.query.filter(User.role == 'admin', User.email.isnot(None)).all()
    return [a.email for a in admins]


def _summary_body(title, summary):
    return (
        f"{title}\n\n"
        f"Payments recorded: {summary['payments']}\n"
        f"Total revenue: {summary['total_amount']:.2f}\n\n"
        f"- SmartPark"
    )


@celery.task
def send_daily_report(day=None):
    """
    Scheduled Task: e-mails admins the payment count and revenue of one day
    (yesterday by default).
    """
    report_day = datetime.date.fromisoformat(day) if day else utcnow().date() - datetime.timedelta(days=1)
    logger.info('Building daily report for %s', report_day)

    recipients = _report_recipients()
    if not recipients:
        return "No admin e-mail addresses configured."

    summary = reports.revenue_summary(db.session, report_day, report_day)
    msg = Message(
        subject=f"SmartPark Daily Report - {report_day.isoformat()}",
        recipients=recipients,
        body=_summary_body(f"Daily report for {report_day.isoformat()}", summary)
    )
    mail.send(msg)
    logger.info('Daily report sent to %d admins', len(recipients))

    return f"Daily report sent to {len(recipients)} admins."


@celery.task
def send_monthly_report():
    """
    Scheduled Task: e-mails admins the revenue of the previous calendar month.
    """
    today = utcnow().date()
    this_month_start = today.replace(day=1)
    prev_month_start = this_month_start - relativedelta(months=1)
    prev_month_end = this_month_start - datetime.timedelta(days=1)

    month_name = prev_month_start.strftime('%B %Y')
    logger.info('Building monthly report for %s', month_name)

    recipients = _report_recipients()
    if not recipients:
        return "No admin e-mail addresses configured."

    summary = reports.revenue_summary(db.session, prev_month_start, prev_month_end)
    msg = Message(
        subject=f"SmartPark Monthly Report - {month_name}",
        recipients=recipients,
        body=_summary_body(f"Monthly report for {month_name}", summary)
    )
    mail.send(msg)

    return f"Monthly report for {month_name} sent to {len(recipients)} admins."
