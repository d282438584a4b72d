"""
Email Service
Sends approval request, decision and final broadcast emails
"""

import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Iterable, List, Optional, Tuple

from src.config.settings import settings
from src.utils.helpers import format_datetime, humanize
from src.utils.logger import setup_logger

logger = setup_logger()


class EmailService:
    """Email service for approval workflow notifications"""

    def __init__(self):
        """Initialize email service with SMTP configuration"""
        self.smtp_server = settings.SMTP_SERVER
        self.smtp_port = settings.SMTP_PORT
        self.smtp_username = settings.SMTP_USERNAME
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.FROM_EMAIL or self.smtp_username
        self.from_name = settings.FROM_NAME

        # Check if email is configured
        self.is_configured = bool(self.smtp_username and self.smtp_password)

        if not self.is_configured:
            logger.warning("⚠️ Email service not configured. Set SMTP credentials in .env file.")

    def _send_email(self, to_email: str, subject: str, html_content: str, text_content: str = None) -> bool:
        """
        Send email via SMTP

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML email body
            text_content: Plain text fallback (optional)

        Returns:
            bool: True if the message was handed to the SMTP server
        """
        if not self.is_configured:
            logger.warning(f"Email not sent to {to_email} - SMTP not configured")
            return False

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = f"{self.from_name} <{self.from_email}>"
            msg['To'] = to_email

            if text_content:
                msg.attach(MIMEText(text_content, 'plain'))
            msg.attach(MIMEText(html_content, 'html'))

            with smtplib.SMTP(self.smtp_server, self.smtp_port) as server:
                server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)

            logger.info(f"✅ Email sent to {to_email}: {subject}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"❌ Failed to send email to {to_email}: {str(e)}")
            return False

    def _render(self, title: str, greeting: str, intro: str, details: List[Tuple[str, str]], closing: str) -> Tuple[str, str]:
        """Build the HTML and plain text bodies shared by every workflow email"""
        rows = "".join(
            f'<p><strong>{label}:</strong> {value}</p>' for label, value in details
        )
        html_content = f"""
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <style>
        body {{ font-family: Arial, sans-serif; background-color: #f0fff0; margin: 0; padding: 0; }}
        .container {{ max-width: 600px; margin: 20px auto; background-color: #ffffff; border-radius: 8px; overflow: hidden; }}
        .header {{ background-image: linear-gradient(to right, #7cc56f, #4caf50); color: #ffffff; padding: 20px; text-align: center; }}
        .content {{ padding: 30px; color: #333333; line-height: 1.6; }}
        .info-box {{ background-color: #e8f5e9; border-left: 4px solid #4CAF50; padding: 15px; margin: 20px 0; border-radius: 4px; }}
        .info-box strong {{ color: #388e3c; }}
        .button {{ display: inline-block; padding: 12px 24px; background-color: #4CAF50; color: #ffffff; text-decoration: none; border-radius: 6px; font-weight: bold; }}
        .footer {{ text-align: center; padding: 20px; font-size: 12px; color: #777777; border-top: 1px solid #dddddd; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header"><h2>{title}</h2></div>
        <div class="content">
            <p>{greeting}</p>
            <p>{intro}</p>
            <div class="info-box">{rows}</div>
            <p>{closing}</p>
            <a class="button" href="{settings.APP_BASE_URL}/approvals">Open {settings.APP_NAME}</a>
        </div>
        <div class="footer">
            <p>This is an automated message. Please do not reply.</p>
            <p>{self.from_name}</p>
        </div>
    </div>
</body>
</html>
"""
        text_rows = "\n".join(f"- {label}: {value}" for label, value in details)
        text_content = f"{title.upper()}\n\n{greeting}\n\n{intro}\n\n{text_rows}\n\n{closing}\n\n---\n{self.from_name}\n"
        return html_content, text_content

    @staticmethod
    def _request_details(request_data: dict) -> List[Tuple[str, str]]:
        return [
            ("Form ID", request_data.get("id")),
            ("Form Type", humanize(request_data.get("type", ""))),
            ("Submitted By", request_data.get("requester_name", "N/A")),
            ("Department", request_data.get("department_name") or "N/A"),
            ("Submitted At", format_datetime(request_data["created_at"]) if request_data.get("created_at") else "N/A"),
            ("Reason", request_data.get("reason") or "N/A"),
        ]

    def send_approval_request(self, to_email: str, approver_name: str, request_data: dict) -> bool:
        """
        Ask an approver to review a request waiting at their step

        Args:
            to_email: Approver email
            approver_name: Approver display name
            request_data: Request summary (id, type, requester_name, ...)
        """
        form_type = humanize(request_data.get("type", "")).upper()
        subject = f"[Action Required] New Form for Your Approval: {form_type}"
        html_content, text_content = self._render(
            title="New Form for Your Approval",
            greeting=f"Hello {approver_name},",
            intro=f"A {form_type} form submitted by {request_data.get('requester_name')} requires your approval.",
            details=self._request_details(request_data),
            closing=f"Please log in to {settings.APP_NAME} to review the form."
        )
        return self._send_email(to_email, subject, html_content, text_content)

    def send_decision_notification(
        self,
        to_email: str,
        requester_name: str,
        request_data: dict,
        decided_by: str,
        step_role: str,
        action: str,
        comment: Optional[str] = None
    ) -> bool:
        """
        Tell the requester about an approve/reject decision

        Args:
            to_email: Requester email
            requester_name: Requester display name
            request_data: Request summary including the new status
            decided_by: Name of the approver
            step_role: Role of the decided step
            action: approved or rejected
            comment: Optional decision comment
        """
        form_type = humanize(request_data.get("type", "")).upper()
        if action == "rejected":
            subject = f"❌ Form Rejected - {request_data.get('id')}"
            intro = f"Your {form_type} form was rejected by {decided_by} ({humanize(step_role)})."
        elif request_data.get("status") == "approved":
            subject = f"✅ Form Fully Approved - {request_data.get('id')}"
            intro = f"Your {form_type} form has been fully approved. Final approval by {decided_by}."
        else:
            subject = f"✅ Form Approved by {humanize(step_role)} - {request_data.get('id')}"
            intro = f"Your {form_type} form was approved by {decided_by} ({humanize(step_role)}) and moves to the next approver."

        details = self._request_details(request_data)
        details.append(("Status", humanize(request_data.get("status", "")).upper()))
        if comment:
            details.append(("Comment", comment))

        html_content, text_content = self._render(
            title=subject.split(" - ")[0],
            greeting=f"Dear {requester_name},",
            intro=intro,
            details=details,
            closing="You can follow the approval progress in the history page."
        )
        return self._send_email(to_email, subject, html_content, text_content)

    def send_full_broadcast(self, recipients: Iterable[str], request_data: dict) -> int:
        """
        Announce a fully approved request to everyone involved

        Args:
            recipients: Email addresses; blanks and duplicates are skipped
            request_data: Request summary

        Returns:
            int: Number of emails sent
        """
        unique_recipients = []
        for email in recipients:
            email = (email or "").strip()
            if email and email.lower() not in {r.lower() for r in unique_recipients}:
                unique_recipients.append(email)

        form_type = humanize(request_data.get("type", "")).upper()
        subject = f"[Approved] {form_type} form {request_data.get('id')} has been fully approved"
        html_content, text_content = self._render(
            title="Form Fully Approved",
            greeting="Hello,",
            intro=f"The {form_type} form submitted by {request_data.get('requester_name')} completed every approval step.",
            details=self._request_details(request_data),
            closing="No further action is required."
        )

        sent = 0
        for email in unique_recipients:
            if self._send_email(email, subject, html_content, text_content):
                sent += 1
        logger.info(f"📧 Broadcast for {request_data.get('id')} sent to {sent}/{len(unique_recipients)} recipients")
        return sent


# Create singleton instance
email_service = EmailService()
