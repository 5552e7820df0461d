"""
SMTP notifications for expiring certificates.

smtplib is blocking; async callers should wrap these methods with
``asyncio.to_thread``.
"""
import logging
import smtplib
import ssl
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Callable, Dict, List, Optional

from jinja2 import Template

from ..config import Settings
from ..exceptions import EmailDeliveryError, EmailNotConfigured

logger = logging.getLogger(__name__)

SMTP_TIMEOUT = 30

EXPIRY_HTML = Template("""
<html>
  <head>
    <style>
      body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
      .header { background-color: #f8f9fa; padding: 20px; border-radius: 5px; margin-bottom: 20px; }
      .critical { background-color: #f8d7da; border: 1px solid #f5c6cb; border-radius: 5px; padding: 15px; margin-bottom: 15px; }
      .warning { background-color: #fff3cd; border: 1px solid #ffeaa7; border-radius: 5px; padding: 15px; margin-bottom: 15px; }
      .cert-table { width: 100%; border-collapse: collapse; margin-top: 10px; }
      .cert-table th, .cert-table td { border: 1px solid #ddd; padding: 8px; text-align: left; }
      .cert-table th { background-color: #f2f2f2; }
      .footer { margin-top: 30px; padding-top: 20px; border-top: 1px solid #eee; font-size: 0.9em; color: #666; }
    </style>
  </head>
  <body>
    <div class="header">
      <h2>Certificate Expiry Alert - mkcert Web UI</h2>
      <p>This is an automated notification about certificates that are approaching expiry.</p>
    </div>
    {% for section in sections if section.certificates %}
    <div class="{{ section.css }}">
      <h3>{{ section.title }} (&le; {{ section.days }} days)</h3>
      <table class="cert-table">
        <thead>
          <tr><th>Certificate</th><th>Domains</th><th>Expires</th><th>Days Remaining</th></tr>
        </thead>
        <tbody>
        {% for cert in section.certificates %}
          <tr>
            <td>{{ cert.path }}</td>
            <td>{{ cert.domains | join(', ') if cert.domains else 'N/A' }}</td>
            <td>{{ cert.expiry.strftime('%Y-%m-%d') }}</td>
            <td style="color: {{ section.color }}; font-weight: bold;">{{ cert.daysUntilExpiry }}</td>
          </tr>
        {% endfor %}
        </tbody>
      </table>
    </div>
    {% endfor %}
    <div class="footer">
      <p><strong>Action Required:</strong> Please renew the certificates listed above to avoid service interruptions.</p>
      <p>This notification was sent by mkcert Web UI certificate monitoring service.</p>
      <p><em>Generated on {{ generated }}</em></p>
    </div>
  </body>
</html>
""", autoescape=True)

EXPIRY_TEXT = Template("""Certificate Expiry Alert - mkcert Web UI
==================================================

The following certificates are approaching expiry:

{% for cert in certificates -%}
[{{ cert.priority | upper }}] {{ cert.path }}
  Domains: {{ cert.domains | join(', ') if cert.domains else 'N/A' }}
  Expires: {{ cert.expiry.strftime('%Y-%m-%d') }}
  Days remaining: {{ cert.daysUntilExpiry }}

{% endfor -%}
Please renew the certificates listed above to avoid service interruptions.

Generated on {{ generated }}
""")

TEST_HTML = Template("""
<html>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <div style="background-color: #d4edda; border: 1px solid #c3e6cb; border-radius: 5px; padding: 20px;">
      <h2>Test Email - mkcert Web UI</h2>
      <p>This is a test email to verify your SMTP configuration is working correctly.</p>
    </div>
    <p>If you received this email, your email notification service has been configured successfully!</p>
    <ul>
      <li>SMTP Host: {{ host }}</li>
      <li>SMTP Port: {{ port }}</li>
      <li>Secure Connection: {{ 'Yes' if secure else 'No' }}</li>
      <li>From Address: {{ sender }}</li>
    </ul>
    <p><em>Generated on {{ generated }}</em></p>
  </body>
</html>
""", autoescape=True)


def _now_text() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


class EmailService:
    """Sends certificate expiry alerts and test messages over SMTP"""

    def __init__(self, settings: Settings, smtp_factory: Optional[Callable] = None):
        self.settings = settings
        self._smtp_factory = smtp_factory

    def is_configuration_valid(self) -> bool:
        s = self.settings
        return bool(s.SMTP_HOST and s.SMTP_USER and s.SMTP_PASSWORD and s.email_recipients)

    @property
    def enabled(self) -> bool:
        return self.settings.EMAIL_ENABLED

    def _require_ready(self):
        if not self.settings.EMAIL_ENABLED:
            raise EmailNotConfigured("Email notifications are disabled")
        if not self.is_configuration_valid():
            raise EmailNotConfigured("Email service not properly configured")

    def _tls_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        if not self.settings.SMTP_TLS_VERIFY:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def _connect(self) -> smtplib.SMTP:
        s = self.settings
        if self._smtp_factory:
            return self._smtp_factory(s.SMTP_HOST, s.SMTP_PORT, timeout=SMTP_TIMEOUT)
        if s.SMTP_SECURE:
            return smtplib.SMTP_SSL(s.SMTP_HOST, s.SMTP_PORT, timeout=SMTP_TIMEOUT, context=self._tls_context())
        return smtplib.SMTP(s.SMTP_HOST, s.SMTP_PORT, timeout=SMTP_TIMEOUT)

    def _open(self) -> smtplib.SMTP:
        server = self._connect()
        try:
            if not self.settings.SMTP_SECURE:
                server.starttls(context=self._tls_context())
            server.login(self.settings.SMTP_USER, self.settings.SMTP_PASSWORD)
        except (smtplib.SMTPException, OSError):
            server.close()
            raise
        return server

    def verify_connection(self) -> Dict:
        self._require_ready()
        try:
            server = self._open()
            server.quit()
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP verification failed: %s", e)
            raise EmailDeliveryError(f"SMTP verification failed: {e}") from e
        return {"success": True, "message": "SMTP connection verified successfully"}

    def _send(self, subject: str, text: str, html: str) -> Dict:
        recipients = self.settings.email_recipients
        msg = EmailMessage()
        msg["From"] = self.settings.EMAIL_FROM
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = subject
        msg["Message-ID"] = make_msgid(domain="mkcert-web")
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")

        try:
            server = self._open()
            try:
                server.send_message(msg)
            finally:
                server.quit()
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email '%s': %s", subject, e)
            raise EmailDeliveryError(f"Failed to send email: {e}") from e

        return {
            "success": True,
            "message": f"Notification sent to {len(recipients)} recipient(s)",
            "messageId": msg["Message-ID"],
        }

    def render_expiry_alert(self, certificates: List[Dict]) -> Dict[str, str]:
        s = self.settings
        critical = [c for c in certificates if c["priority"] == "critical"]
        warning = [c for c in certificates if c["priority"] != "critical"]
        generated = _now_text()
        sections = [
            {"css": "critical", "title": "Critical - Expiring Soon", "days": s.CERT_CRITICAL_DAYS,
             "color": "#dc3545", "certificates": critical},
            {"css": "warning", "title": "Warning - Expiring Soon", "days": s.CERT_WARNING_DAYS,
             "color": "#ffc107", "certificates": warning},
        ]
        return {
            "html": EXPIRY_HTML.render(sections=sections, generated=generated),
            "text": EXPIRY_TEXT.render(certificates=certificates, generated=generated),
        }

    def send_expiry_alert(self, certificates: List[Dict]) -> Dict:
        if not self.settings.EMAIL_ENABLED or not self.is_configuration_valid():
            logger.warning("Email service not available - skipping notification")
            return {"success": False, "message": "Email service not configured"}
        if not certificates:
            return {"success": False, "message": "No certificates to notify about"}

        body = self.render_expiry_alert(certificates)
        result = self._send(self.settings.EMAIL_SUBJECT, body["text"], body["html"])
        logger.info("Certificate expiry notification sent: %s", result["messageId"])
        return result

    def send_test_email(self) -> Dict:
        self._require_ready()
        s = self.settings
        html = TEST_HTML.render(host=s.SMTP_HOST, port=s.SMTP_PORT, secure=s.SMTP_SECURE,
                                sender=s.EMAIL_FROM, generated=_now_text())
        text = "This is a test email from mkcert Web UI to verify SMTP configuration is working correctly."
        result = self._send("Test Email - mkcert Web UI Email Service", text, html)
        result["message"] = f"Test email sent successfully to {len(s.email_recipients)} recipient(s)"
        return result

    def status(self) -> Dict:
        s = self.settings
        return {
            "enabled": s.EMAIL_ENABLED,
            "configured": self.is_configuration_valid(),
            "smtp": {
                "host": s.SMTP_HOST,
                "port": s.SMTP_PORT,
                "secure": s.SMTP_SECURE,
                "user": "***configured***" if s.SMTP_USER else None,
            },
            "from": s.EMAIL_FROM,
            "to": s.email_recipients or None,
        }
