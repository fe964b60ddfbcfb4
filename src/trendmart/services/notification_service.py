import smtplib
from email.message import EmailMessage
from typing import Optional

from trendmart.core.config import MailConfig, OrderConfig
from trendmart.utils.date_utils import DateUtils
from trendmart.utils.formatting_utils import FormattingUtils
import logging

logger = logging.getLogger(__name__)


class EmailNotificationService:
    """
    Outbound email for the back office.

    Responsibilities:
    - Tell the store admin about new orders
    - Deliver registration one-time codes

    Without an SMTP host configured the messages are logged instead of sent,
    which is what local development and the test suite rely on. Send
    failures propagate; callers decide whether they matter.
    """

    def __init__(self, mail_config: MailConfig, order_config: Optional[OrderConfig] = None):
        self.mail_config = mail_config
        self.order_config = order_config or OrderConfig()

    def send_order_notification(self, order_id: int, order_total: int, customer_name: str) -> None:
        recipient = self.mail_config.admin_notification_email
        if not recipient:
            logger.info(f"No admin notification address configured; skipping email for order {order_id}")
            return

        total = FormattingUtils.format_money(order_total, self.order_config.currency)
        placed_at = DateUtils.format_for_display(DateUtils.now_utc(), self.order_config.store_timezone)
        subject = f"New order #{order_id} - {total}"
        body_text = (
            f"A new order has been placed.\n\n"
            f"Order: #{order_id}\n"
            f"Customer: {customer_name}\n"
            f"Total: {total}\n"
            f"Placed at: {placed_at}\n"
        )
        body_html = (
            f"<h2>New order #{order_id}</h2>"
            f"<p><strong>Customer:</strong> {customer_name}<br>"
            f"<strong>Total:</strong> {total}<br>"
            f"<strong>Placed at:</strong> {placed_at}</p>"
        )
        self.send_email(recipient, subject, body_text, body_html)

    def send_otp(self, email: str, otp: str, ttl_minutes: int = 10) -> None:
        expires_at = DateUtils.format_for_display(
            DateUtils.create_expiry_time(ttl_minutes), self.order_config.store_timezone
        )
        subject = "Your TrendMart verification code"
        body_text = (
            f"Your verification code is {otp}.\n"
            f"It is valid for {ttl_minutes} minutes (until {expires_at}).\n"
        )
        body_html = (
            f"<p>Your verification code is <strong>{otp}</strong>.</p>"
            f"<p>It is valid for {ttl_minutes} minutes (until {expires_at}).</p>"
        )
        self.send_email(email, subject, body_text, body_html)

    def send_email(self, to_email: str, subject: str, body_text: str, body_html: Optional[str] = None) -> None:
        if not self.mail_config.smtp_host:
            logger.info(f"[mail disabled] To: {to_email} | Subject: {subject}")
            return

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.mail_config.mail_from
        message["To"] = to_email
        message.set_content(body_text)
        if body_html:
            message.add_alternative(body_html, subtype="html")

        logger.info(f"Sending email to {to_email}: {subject}")
        with smtplib.SMTP(self.mail_config.smtp_host, self.mail_config.smtp_port, timeout=10) as client:
            if self.mail_config.use_tls:
                client.starttls()
            if self.mail_config.smtp_user:
                client.login(self.mail_config.smtp_user, self.mail_config.smtp_password or "")
            client.send_message(message)
