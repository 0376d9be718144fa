"""Email delivery (Mailgun preferred, SendGrid fallback) and notification/digest templates."""
import logging
from html import escape
from typing import Any

from app.config import get_settings

logger = logging.getLogger(__name__)

MAILGUN_US_BASE = "https://api.mailgun.net"
MAILGUN_EU_BASE = "https://api.eu.mailgun.net"


def send_email(to_email: str, subject: str, html_content: str, text_content: str | None = None) -> bool:
    """Send via Mailgun when configured, else SendGrid. Returns False when nothing could send it."""
    settings = get_settings()
    if settings.mailgun_api_key and settings.mailgun_domain:
        return _send_email_mailgun(to_email, subject, html_content, text_content=text_content, settings=settings)
    if settings.sendgrid_api_key:
        return _send_email_sendgrid(to_email, subject, html_content, text_content=text_content, settings=settings)
    logger.warning(
        "[Email] NOT SENT: to=%s subject=%s. Set MAILGUN_API_KEY + MAILGUN_DOMAIN or SENDGRID_API_KEY in .env.",
        to_email, subject,
    )
    return False


def _mailgun_from(settings) -> str:
    domain = (settings.mailgun_domain or "").strip().lower()
    from_addr = (settings.mailgun_from_email or "").strip()
    from_domain = from_addr.split("@")[-1].lower() if "@" in from_addr else ""
    if domain and from_domain != domain:
        # Mailgun drops mail whose sender domain differs from the sending domain
        from_addr = f"noreply@{domain}"
    return f"{settings.mailgun_from_name} <{from_addr}>"


def _send_email_mailgun(to_email: str, subject: str, html_content: str, text_content: str | None = None, settings=None) -> bool:
    if settings is None:
        settings = get_settings()
    import httpx

    base = (settings.mailgun_base_url or MAILGUN_US_BASE).strip().rstrip("/")
    domain = (settings.mailgun_domain or "").strip().lower()
    data = {
        "from": _mailgun_from(settings),
        "to": to_email,
        "subject": subject,
        "text": text_content or "",
        "html": html_content or "",
    }
    try:
        with httpx.Client(timeout=10.0) as client:
            r = client.post(f"{base}/v3/{domain}/messages", auth=("api", settings.mailgun_api_key), data=data)
            if 200 <= r.status_code < 300:
                logger.info("[Mailgun] sent: to=%s subject=%s", to_email, subject)
                return True
            if r.status_code == 401 and base == MAILGUN_US_BASE:
                # Domain may live in the EU region
                r = client.post(f"{MAILGUN_EU_BASE}/v3/{domain}/messages", auth=("api", settings.mailgun_api_key), data=data)
                if 200 <= r.status_code < 300:
                    logger.info("[Mailgun] sent (EU): to=%s subject=%s", to_email, subject)
                    return True
            logger.error("[Mailgun] failed: status=%s to=%s body=%s", r.status_code, to_email, r.text[:500])
            return False
    except httpx.HTTPError as e:
        logger.error("[Mailgun] %s: to=%s error=%s", type(e).__name__, to_email, e)
        return False


def _send_email_sendgrid(to_email: str, subject: str, html_content: str, text_content: str | None = None, settings=None) -> bool:
    if settings is None:
        settings = get_settings()
    from sendgrid import SendGridAPIClient
    from sendgrid.helpers.mail import Mail

    message = Mail(
        from_email=(settings.sendgrid_from_email, settings.sendgrid_from_name),
        to_emails=to_email,
        subject=subject,
        html_content=html_content,
        plain_text_content=text_content or "",
    )
    try:
        SendGridAPIClient(settings.sendgrid_api_key).send(message)
    except Exception as e:  # sendgrid raises python_http_client errors of several types
        logger.error("[SendGrid] %s: to=%s error=%s", type(e).__name__, to_email, e)
        return False
    logger.info("[SendGrid] sent: to=%s subject=%s", to_email, subject)
    return True


def _value(notification: Any, name: str) -> Any:
    if isinstance(notification, dict):
        v = notification.get(name)
    else:
        v = getattr(notification, name, None)
    return getattr(v, "value", v)


def _button(url: str, label: str) -> str:
    return (
        f'<p><a href="{url}" style="background: #2563eb; color: white; padding: 12px 24px; '
        f'text-decoration: none; border-radius: 6px;">{label}</a></p>'
    )


def _callout(text: str, bg: str, border: str, color: str) -> str:
    return (
        f'<div style="background: {bg}; border: 1px solid {border}; padding: 16px; border-radius: 8px; margin: 16px 0;">'
        f'<p style="margin: 0; color: {color};">{text}</p></div>'
    )


def render_notification_email(notification: Any, app_url: str | None = None) -> tuple[str, str, str]:
    """(subject, html, text) for one notification, by type; unknown types get a generic layout."""
    if app_url is None:
        app_url = get_settings().app_url
    properties_url = f"{app_url.rstrip('/')}/properties"
    ntype = _value(notification, "type")
    municipality = _value(notification, "municipality") or ""
    title = _value(notification, "title") or ""
    message = _value(notification, "message") or ""
    due = _value(notification, "due_date")
    due_str = due.strftime("%Y-%m-%d") if hasattr(due, "strftime") else (str(due) if due else "See details")

    if ntype == "mat_due":
        subject = f"MAT Report Due - {municipality}"
        action = "File your MAT report to avoid penalties."
        html = (
            '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
            '<h2 style="color: #dc2626;">MAT Report Due</h2>'
            f"<p><strong>Municipality:</strong> {escape(municipality)}</p>"
            f"<p><strong>Due Date:</strong> {due_str}</p>"
            f"<p>{escape(message)}</p>"
            + _callout(f"<strong>Action Required:</strong> {action}", "#fef2f2", "#fecaca", "#991b1b")
            + _button(properties_url, "View Properties")
            + "</div>"
        )
        text = f"{subject}\n\n{message}\n\nAction Required: {action}\n\nView your properties: {properties_url}"
        return subject, html, text

    if ntype == "license_expiry":
        subject = f"STR License Expiring - {municipality}"
        action = "Renew your license immediately to continue operating legally."
        html = (
            '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
            '<h2 style="color: #ea580c;">License Expiry Alert</h2>'
            f"<p><strong>Municipality:</strong> {escape(municipality)}</p>"
            f"<p><strong>Expiry Date:</strong> {due_str}</p>"
            f"<p>{escape(message)}</p>"
            + _callout(f"<strong>Action Required:</strong> {action}", "#fff7ed", "#fed7aa", "#9a3412")
            + _button(properties_url, "Manage Licenses")
            + "</div>"
        )
        text = f"{subject}\n\n{message}\n\nAction Required: {action}\n\nManage licenses: {properties_url}"
        return subject, html, text

    if ntype == "bylaw_update":
        subject = f"By-law Update - {municipality}"
        heading = title.replace(f"{municipality} By-law Update: ", "")
        action = "Check if this update affects your properties."
        html = (
            '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
            '<h2 style="color: #0891b2;">Regulatory Update</h2>'
            f"<p><strong>Municipality:</strong> {escape(municipality)}</p>"
            f"<h3>{escape(heading)}</h3>"
            f"<p>{escape(message)}</p>"
            + _callout(f"<strong>Review Required:</strong> {action}", "#f0f9ff", "#7dd3fc", "#0c4a6e")
            + _button(properties_url, "Review Compliance")
            + "</div>"
        )
        text = f"{subject}\n\n{title}\n\n{message}\n\nReview Required: {action}\n\nReview compliance: {properties_url}"
        return subject, html, text

    subject = f"GTA Compliance Alert: {title}"
    html = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f"<h2>{escape(title)}</h2><p>{escape(message)}</p>"
        + _button(properties_url, "View Dashboard")
        + "</div>"
    )
    text = f"{title}\n\n{message}\n\nView dashboard: {properties_url}"
    return subject, html, text


def send_notification_email(notification: Any, to_email: str) -> bool:
    subject, html, text = render_notification_email(notification)
    ok = send_email(to_email, subject, html, text_content=text)
    if ok:
        logger.info("[Email] notification %s sent to %s", _value(notification, "id"), to_email)
    return ok


def build_personalized_digest(user: Any, properties: list[dict]) -> dict:
    """Digest for one user. Each property dict has address, municipality and deadlines (rule_key/due_date/status)."""
    name = (_value(user, "full_name") or "").strip()
    upcoming = []
    for prop in properties:
        due_soon = [
            d for d in prop.get("deadlines") or []
            if _value(d, "status") in ("due_soon", "overdue")
        ]
        if due_soon:
            upcoming.append({
                "address": prop.get("address"),
                "municipality": prop.get("municipality"),
                "deadlines": due_soon,
            })
    return {
        "subject": "Your Monthly Compliance Digest",
        "greeting": f"Hi {name}," if name else "Hi,",
        "properties": len(properties),
        "upcoming_deadlines": upcoming,
        "summary": f"You have {len(upcoming)} properties with upcoming deadlines",
    }


def send_digest_email(to_email: str, digest: dict) -> bool:
    rows_html = []
    rows_text = []
    for entry in digest["upcoming_deadlines"]:
        items = []
        for d in entry["deadlines"]:
            due = _value(d, "due_date")
            due_str = due.isoformat() if hasattr(due, "isoformat") else str(due)
            items.append(f"{_value(d, 'rule_key')}: {_value(d, 'status')} (due {due_str})")
        rows_html.append(
            f"<li><strong>{escape(str(entry['address']))}</strong> ({escape(str(entry['municipality']))})<ul>"
            + "".join(f"<li>{escape(i)}</li>" for i in items)
            + "</ul></li>"
        )
        rows_text.append(f"- {entry['address']} ({entry['municipality']}): " + "; ".join(items))
    html = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f"<h2>{digest['subject']}</h2><p>{escape(digest['greeting'])}</p><p>{digest['summary']}.</p>"
        f"<ul>{''.join(rows_html)}</ul>"
        + _button(f"{get_settings().app_url.rstrip('/')}/properties", "View Properties")
        + "</div>"
    )
    text = f"{digest['subject']}\n\n{digest['greeting']}\n\n{digest['summary']}.\n\n" + "\n".join(rows_text)
    return send_email(to_email, digest["subject"], html, text_content=text)


def send_welcome_email(to_email: str, full_name: str | None = None) -> bool:
    name = (full_name or "").strip() or "there"
    subject = "[GTA Compliance] Welcome – your account is ready"
    text = f"Hi {name}, welcome to GTA Compliance. Add your properties to see where you stand with your municipality's rules."
    html = f"""
    <p>Hi {escape(name)},</p>
    <p>Welcome to <strong>GTA Compliance</strong>. Your account is ready.</p>
    <p>Add your properties to see where you stand with your municipality's short-term rental rules.</p>
    <p>— GTA Compliance</p>
    """
    return send_email(to_email, subject, html, text_content=text)
