"""Email delivery for alert digests using SMTP."""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional

from ..config import config
from ..errors import ChannelConfigurationError
from ..models.notification import EmailResult, NotificationEvent, NotificationKind
from .formatting import format_price, property_url, results_url

logger = logging.getLogger(__name__)


def _subject(events: list[NotificationEvent]) -> str:
    kinds = {e.kind for e in events}
    count = len(events)
    plural = "s" if count != 1 else ""
    if kinds == {NotificationKind.NEW_MATCH}:
        verb = "matches" if count == 1 else "match"
        return f"{count} new listing{plural} {verb} your saved search"
    if kinds == {NotificationKind.PRICE_DROP}:
        return f"Price drop on {count} listing{plural} you follow"
    return f"{count} updates for your saved search"


def _price_cell(event: NotificationEvent, locale: str) -> str:
    meta = event.metadata
    if event.kind is NotificationKind.PRICE_DROP:
        return (
            f'<span style="text-decoration:line-through;color:#999;">'
            f"{format_price(meta.get('old_price', 0), locale)}</span> "
            f'<strong style="color:#16a34a;">{format_price(meta.get("new_price", 0), locale)}</strong> '
            f'<span style="color:#16a34a;">(-{meta.get("drop_percent", 0)}%)</span>'
        )
    return f"<strong>{format_price(meta.get('price', 0), locale)}</strong>"


def render_alert_email(
    subscription_id: str,
    events: list[NotificationEvent],
    locale: str = "en",
    base_url: Optional[str] = None,
    top_n: Optional[int] = None,
) -> tuple[str, str]:
    """Build the subject and HTML body of an alert digest.

    Shows at most `top_n` listings, states how many more there are, and
    links to the full result set.

    Returns:
        (subject, html) tuple
    """
    base_url = base_url or config.app_base_url
    top_n = top_n or config.email_top_n
    shown = events[:top_n]
    remaining = len(events) - len(shown)

    rows = ""
    for event in shown:
        meta = event.metadata
        label = "Price drop" if event.kind is NotificationKind.PRICE_DROP else "New"
        rows += f"""
            <tr>
                <td style="padding:8px;border-bottom:1px solid #eee;">
                    <span style="color:#64748b;font-size:12px;">{label}</span><br>
                    <a href="{escape(property_url(base_url, event.listing_id))}" style="color:#2563eb;text-decoration:none;">{escape(meta.get("listing_title", event.title))}</a>
                    <br><span style="color:#666;font-size:12px;">{escape(meta.get("city", ""))}</span>
                </td>
                <td style="padding:8px;border-bottom:1px solid #eee;text-align:right;">{_price_cell(event, locale)}</td>
            </tr>"""

    more = ""
    if remaining > 0:
        more = f'<p style="color:#334155;">And {remaining} more matching listings.</p>'

    link = escape(results_url(base_url, subscription_id))
    html = f"""
    <div style="font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;max-width:640px;margin:0 auto;padding:20px;">
        <h1 style="color:#0f172a;font-size:20px;margin-bottom:4px;">{escape(_subject(events))}</h1>
        <table style="width:100%;border-collapse:collapse;font-size:14px;">
            {rows}
        </table>
        {more}
        <p><a href="{link}" style="background:#2563eb;color:#fff;padding:10px 16px;border-radius:6px;text-decoration:none;">View all results</a></p>
        <hr style="border:none;border-top:1px solid #e2e8f0;margin:24px 0;">
        <p style="color:#94a3b8;font-size:12px;">
            You're receiving this because you saved a search with email alerts turned on.
        </p>
    </div>
    """
    return _subject(events), html


class EmailDispatcher:
    """Send alert emails through an SMTP server.

    Settings can be provided directly or via PROPALERT_SMTP_* environment
    variables.

    Example:
        mailer = EmailDispatcher()
        subject, html = render_alert_email(sub.id, events, locale=sub.locale)
        mailer.send(sub.email, subject, html)
    """

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
        use_tls: Optional[bool] = None,
        require_config: bool = False,
    ):
        """Initialize dispatcher with SMTP settings.

        Args:
            smtp_host: SMTP server hostname
            smtp_port: SMTP server port
            smtp_user: SMTP username
            smtp_password: SMTP password
            from_email: From address (defaults to smtp_user)
            use_tls: Issue STARTTLS before login
            require_config: Raise if no host is configured

        Raises:
            ChannelConfigurationError: If require_config and no host is set
        """
        self.smtp_host = smtp_host or config.smtp_host
        self.smtp_port = int(smtp_port or config.smtp_port)
        self.smtp_user = smtp_user or config.smtp_user
        self.smtp_password = smtp_password or config.smtp_password
        self.from_email = from_email or config.smtp_from or self.smtp_user
        self.use_tls = config.smtp_tls if use_tls is None else use_tls
        if require_config and not self.smtp_host:
            raise ChannelConfigurationError("email", ["smtp_host"])

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.from_email)

    def send(self, to_address: str, subject: str, html: str) -> EmailResult:
        """Send one HTML email.

        Returns:
            EmailResult.OK if the server accepted the message, FAILED otherwise
        """
        if not self.is_configured:
            logger.warning("SMTP not configured, skipping email")
            return EmailResult.FAILED

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to_address
        msg.attach(MIMEText(html, "html"))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as server:
                if self.use_tls:
                    server.starttls()
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_email, [to_address], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_address}: {e}")
            return EmailResult.FAILED

        logger.info(f"Alert email sent to {to_address}")
        return EmailResult.OK
