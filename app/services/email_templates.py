"""
HTML bodies for transactional emails.
"""

from html import escape

_CODE_BLOCK = (
    '<div style="background: #f3f4f6; padding: 20px; text-align: center; '
    'border-radius: 10px; margin: 20px 0;">'
    '<span style="font-size: 32px; font-weight: bold; letter-spacing: 5px; '
    'color: #1a1a2e;">{code}</span></div>'
)

_LAYOUT = (
    '<div style="font-family: Arial, sans-serif; max-width: 500px; margin: 0 auto; '
    'padding: 20px;">'
    '<h1 style="color: #6366f1; text-align: center;">MZone</h1>'
    '<h2 style="text-align: center;">{heading}</h2>'
    "{body}"
    "</div>"
)

VERIFICATION_SUBJECT = "Verify your MZone account - OTP Code"
RESEND_SUBJECT = "New OTP Code - MZone"


def verification_email(full_name: str, code: str, ttl_minutes: int) -> str:
    """Email sent at registration."""
    body = (
        f"<p>Hello {escape(full_name)},</p>"
        "<p>Your verification code is:</p>"
        f"{_CODE_BLOCK.format(code=escape(code))}"
        f"<p>This code expires in <strong>{ttl_minutes} minutes</strong>.</p>"
        "<p>If you didn't create an account, please ignore this email.</p>"
        '<hr style="margin: 20px 0; border: none; border-top: 1px solid #e5e7eb;">'
        '<p style="color: #666; font-size: 12px; text-align: center;">MZone Premium</p>'
    )
    return _LAYOUT.format(heading="Verify Your Email", body=body)


def resend_email(code: str, ttl_minutes: int) -> str:
    """Email sent when a user asks for a new code."""
    body = (
        f"{_CODE_BLOCK.format(code=escape(code))}"
        f"<p>This code expires in <strong>{ttl_minutes} minutes</strong>.</p>"
    )
    return _LAYOUT.format(heading="Your New OTP Code", body=body)
