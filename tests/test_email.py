"""Email templates, digest building and transport selection."""

from datetime import date
from unittest.mock import MagicMock, patch

from app.models.notification import NotificationPriority, NotificationType
from app.services import notifications as email
from app.services.notification_scheduler import Notification
from conftest import utc


def _notification(type_, **overrides):
    fields = dict(
        id="n1",
        user_id=1,
        type=type_,
        title="MAT Report Due in 7 Days",
        message="Urgent: Your toronto MAT report is due soon.",
        priority=NotificationPriority.high,
        created_at=utc(2025, 6, 1),
        municipality="toronto",
        due_date=utc(2025, 7, 31),
    )
    fields.update(overrides)
    return Notification(**fields)


def test_mat_due_template():
    subject, html, text = email.render_notification_email(_notification(NotificationType.mat_due), "https://app.test/")
    assert subject == "MAT Report Due - toronto"
    assert "<strong>Due Date:</strong> 2025-07-31" in html
    assert "File your MAT report to avoid penalties." in html
    assert 'href="https://app.test/properties"' in html
    assert text.startswith("MAT Report Due - toronto\n\nUrgent: Your toronto MAT report is due soon.")


def test_license_template():
    subject, html, _ = email.render_notification_email(
        _notification(NotificationType.license_expiry, municipality="vaughan"), "https://app.test",
    )
    assert subject == "STR License Expiring - vaughan"
    assert "License Expiry Alert" in html
    assert "Manage Licenses" in html


def test_bylaw_template_strips_title_prefix():
    n = _notification(
        NotificationType.bylaw_update,
        title="toronto By-law Update: New fee schedule",
        due_date=None,
    )
    subject, html, _ = email.render_notification_email(n, "https://app.test")
    assert subject == "By-law Update - toronto"
    assert "<h3>New fee schedule</h3>" in html


def test_user_supplied_text_is_escaped_in_html():
    n = _notification(
        NotificationType.bylaw_update,
        title="<script>alert(1)</script>",
        message='Log in <a href="https://evil.example/login">here</a>',
        due_date=None,
    )
    _, html, text = email.render_notification_email(n, "https://app.test")
    assert "<script>" not in html
    assert '<a href="https://evil.example' not in html
    assert "&lt;a href=&quot;https://evil.example/login&quot;&gt;here&lt;/a&gt;" in html
    # Plain-text part is not HTML
    assert '<a href="https://evil.example/login">' in text


def test_fallback_template_for_other_types():
    n = _notification(NotificationType.compliance_alert, title="Check your listing")
    subject, html, text = email.render_notification_email(n, "https://app.test")
    assert subject == "GTA Compliance Alert: Check your listing"
    assert "View Dashboard" in html


def test_templates_accept_plain_dicts():
    subject, _, _ = email.render_notification_email(
        {"type": "mat_due", "municipality": "newmarket", "title": "t", "message": "m"}, "https://app.test",
    )
    assert subject == "MAT Report Due - newmarket"


def test_digest_lists_only_properties_with_upcoming_deadlines():
    user = {"full_name": "Sam"}
    digest = email.build_personalized_digest(user, [
        {"address": "1 King St", "municipality": "toronto", "deadlines": [
            {"rule_key": "str_license", "due_date": date(2025, 7, 1), "status": "due_soon"},
            {"rule_key": "insurance", "due_date": date(2026, 1, 1), "status": "ok"},
        ]},
        {"address": "2 Main St", "municipality": "newmarket", "deadlines": [
            {"rule_key": "mat_filing", "due_date": date(2025, 9, 1), "status": "ok"},
        ]},
    ])
    assert digest["properties"] == 2
    assert digest["summary"] == "You have 1 properties with upcoming deadlines"
    assert digest["greeting"] == "Hi Sam,"
    [entry] = digest["upcoming_deadlines"]
    assert entry["address"] == "1 King St"
    assert [d["rule_key"] for d in entry["deadlines"]] == ["str_license"]


def test_send_digest_email_renders_items(outbox):
    digest = email.build_personalized_digest({"full_name": None}, [
        {"address": "1 King St", "municipality": "toronto", "deadlines": [
            {"rule_key": "fire_inspection", "due_date": date(2025, 6, 1), "status": "overdue"},
        ]},
    ])
    assert email.send_digest_email("sam@example.com", digest) is True
    [sent] = outbox
    assert sent["subject"] == "Your Monthly Compliance Digest"
    assert "fire_inspection: overdue (due 2025-06-01)" in sent["html"]
    assert sent["text"].startswith("Your Monthly Compliance Digest\n\nHi,\n\n")


def test_digest_escapes_address_and_name(outbox):
    digest = email.build_personalized_digest({"full_name": "<b>Sam</b>"}, [
        {"address": "<img src=x>", "municipality": "toronto", "deadlines": [
            {"rule_key": "str_license", "due_date": date(2025, 7, 1), "status": "due_soon"},
        ]},
    ])
    email.send_digest_email("sam@example.com", digest)
    [sent] = outbox
    assert "<img" not in sent["html"]
    assert "&lt;img src=x&gt;" in sent["html"]
    assert "Hi &lt;b&gt;Sam&lt;/b&gt;," in sent["html"]


def test_welcome_email_escapes_name(outbox):
    email.send_welcome_email("new@example.com", "<i>Pat</i>")
    [sent] = outbox
    assert "Hi &lt;i&gt;Pat&lt;/i&gt;," in sent["html"]


def test_send_email_without_provider_returns_false():
    assert email.send_email("a@example.com", "s", "<p>h</p>") is False


def test_send_email_prefers_mailgun():
    settings = MagicMock(mailgun_api_key="key", mailgun_domain="mg.example.com", sendgrid_api_key="sg")
    with patch.object(email, "get_settings", return_value=settings), \
            patch.object(email, "_send_email_mailgun", return_value=True) as mailgun, \
            patch.object(email, "_send_email_sendgrid") as sendgrid:
        assert email.send_email("a@example.com", "s", "<p>h</p>", text_content="h") is True
    mailgun.assert_called_once()
    sendgrid.assert_not_called()


def test_mailgun_from_address_matches_sending_domain():
    settings = MagicMock(mailgun_domain="mg.example.com", mailgun_from_email="hello@other.com", mailgun_from_name="GTA")
    assert email._mailgun_from(settings) == "GTA <noreply@mg.example.com>"
    settings.mailgun_from_email = "hello@mg.example.com"
    assert email._mailgun_from(settings) == "GTA <hello@mg.example.com>"
