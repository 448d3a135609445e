import logging
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from core.config import settings

logger = logging.getLogger(__name__)


INVITATION_TEMPLATE = """
<div style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <p><strong>{invited_by}</strong> added you to <strong>{team_name}</strong>
    on TeamSeats with the <strong>{role}</strong> role.</p>
    <p>Accepting takes one seat on the team's subscription.</p>
    <p><a href="{link}" style="background-color: #F97316; color: white; padding: 10px 24px;
        text-decoration: none; border-radius: 6px;">Review invitation</a></p>
    <p style="word-break: break-all; color: #555;">{link}</p>
</div>
"""


class EmailService:
    """
    Sends team invitation emails through SendGrid.
    Without an API key or sender the message is only logged.
    """

    def __init__(self, api_key: str | None = None, sender_email: str | None = None):
        self.api_key = api_key if api_key is not None else settings.SENDGRID_API_KEY
        self.sender_email = sender_email if sender_email is not None else settings.MAIL_FROM

        self.enabled = bool(self.api_key and self.sender_email)
        if not self.enabled:
            logger.warning("📧 SendGrid not configured, invitation emails will be logged only.")

    # ============================================================
    # ✅ Invitation email (runs as a BackgroundTask)
    # ============================================================
    def send_invitation_email(
        self,
        to_email: str,
        invitations_link: str,
        role: str,
        team_name: str,
        invited_by: str = "A teammate",
    ) -> bool:
        if not self.enabled:
            logger.info("📨 [Mock Email] %s invited to %s as %s: %s", to_email, team_name, role, invitations_link)
            return True

        message = Mail(
            from_email=self.sender_email,
            to_emails=to_email,
            subject=f"Join {team_name} on TeamSeats",
            html_content=INVITATION_TEMPLATE.format(
                invited_by=invited_by,
                team_name=team_name,
                role=role.title(),
                link=invitations_link,
            ),
        )

        try:
            response = SendGridAPIClient(self.api_key).send(message)
        except Exception as e:
            # A failed email never affects the stored invitation
            logger.exception("❌ Failed to send invitation email to %s: %s", to_email, e)
            return False

        logger.info("✅ Invitation email sent to %s (status %s)", to_email, response.status_code)
        return True


email_service = EmailService()
