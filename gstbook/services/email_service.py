import asyncio
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional, List, Dict
from decimal import Decimal
import logging

from gstbook.core.money import format_money

logger = logging.getLogger(__name__)


class EmailService:
    """Email service for sending transactional emails over SMTP."""

    def __init__(
        self,
        smtp_host: str = "smtp.gmail.com",
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        from_email: str = "",
        from_name: str = "GSTBook"
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_email = from_email or smtp_user
        self.from_name = from_name

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)

    def send_email(
        self,
        to_email: str,
        subject: str,
        text_content: str,
        html_content: Optional[str] = None
    ) -> bool:
        """
        Send an email.

        Args:
            to_email: Recipient email address
            subject: Email subject
            text_content: Plain text body
            html_content: HTML body (optional)

        Returns:
            True if email sent successfully, False otherwise
        """
        if not self.is_configured:
            logger.warning("Email not configured. SMTP credentials missing.")
            return False

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = f"{self.from_name} <{self.from_email}>"
            msg['To'] = to_email

            msg.attach(MIMEText(text_content, 'plain'))
            if html_content:
                msg.attach(MIMEText(html_content, 'html'))

            # Connect and send with timeout
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_email, to_email, msg.as_string())

            logger.info("Email sent successfully to %s", to_email)
            return True

        except smtplib.SMTPAuthenticationError:
            logger.error("SMTP Authentication failed. Check email credentials.")
            return False
        except smtplib.SMTPException as e:
            logger.error("SMTP error: %s", e)
            return False
        except OSError as e:
            # Covers timeouts and refused connections
            logger.error("Network error sending email: %s", e)
            return False

    def send_payment_receipt_email(
        self,
        to_email: str,
        customer_name: str,
        receipt_number: str,
        amount: Decimal,
        currency: str,
        payment_date: str,
        allocations: List[Dict[str, str]],
        team_name: str = ""
    ) -> bool:
        """
        Send a payment receipt.

        ``allocations`` holds ``{"document_number", "amount"}`` pairs for
        the invoices the payment was applied to.
        """
        subject = f"Payment Receipt {receipt_number}"

        lines = [
            f"Dear {customer_name},",
            "",
            f"We have received your payment of {currency} {format_money(amount)} on {payment_date}.",
            f"Receipt number: {receipt_number}",
        ]
        if allocations:
            lines.append("")
            lines.append("Applied to:")
            for allocation in allocations:
                lines.append(f"  {allocation['document_number']}: {currency} {allocation['amount']}")
        lines.extend(["", "Thank you for your business.", team_name or self.from_name])

        return self.send_email(to_email, subject, "\n".join(lines))


def get_email_service() -> EmailService:
    """Get configured email service instance."""
    from gstbook.config import settings

    return EmailService(
        smtp_host=settings.SMTP_HOST,
        smtp_port=settings.SMTP_PORT,
        smtp_user=settings.SMTP_USER,
        smtp_password=settings.SMTP_PASSWORD,
        from_email=settings.SMTP_FROM_EMAIL,
        from_name=settings.SMTP_FROM_NAME
    )


# ==================== NOTIFICATION HELPER ====================

async def send_payment_receipt_notification(
    to_email: Optional[str],
    customer_name: str,
    receipt_number: str,
    amount: Decimal,
    currency: str,
    payment_date: str,
    allocations: List[Dict[str, str]],
    team_name: str = ""
) -> bool:
    """
    Send the payment receipt email off the event loop.

    Called after the payment transaction committed; a failure here never
    affects the recorded payment.
    """
    from gstbook.config import settings

    if not settings.EMAIL_NOTIFICATIONS_ENABLED or not to_email:
        return False

    email_service = get_email_service()
    return await asyncio.to_thread(
        email_service.send_payment_receipt_email,
        to_email,
        customer_name,
        receipt_number,
        amount,
        currency,
        payment_date,
        allocations,
        team_name,
    )
