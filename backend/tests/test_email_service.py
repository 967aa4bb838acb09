"""
Postmark email service: dev-mode logging without a token, delivery failures
reported as "failed" rather than raised.
"""
import asyncio
from unittest.mock import patch

from doclens.services.email_service import RETENTION_SUBJECT, EmailService


def test_without_token_emails_are_logged_not_sent():
    service = EmailService(server_token="")
    assert service.client is None
    assert asyncio.run(service.send_retention_email("a@example.com")) == "logged"


def test_retention_email_is_sent_through_postmark():
    with patch("doclens.services.email_service.PostmarkClient") as client_cls:
        client_cls.return_value.emails.send.return_value = {"MessageID": "pm-1"}
        service = EmailService(server_token="pm-token", sender="hello@doclens.test")

        status = asyncio.run(service.send_retention_email("a@example.com"))

    assert status == "sent"
    client_cls.assert_called_once_with(server_token="pm-token")
    kwargs = client_cls.return_value.emails.send.call_args.kwargs
    assert kwargs["To"] == "a@example.com"
    assert kwargs["From"] == "hello@doclens.test"
    assert kwargs["Subject"] == RETENTION_SUBJECT == "We hate to see you go :("


def test_postmark_failure_is_reported_not_raised():
    with patch("doclens.services.email_service.PostmarkClient") as client_cls:
        client_cls.return_value.emails.send.side_effect = RuntimeError("422 inactive recipient")
        service = EmailService(server_token="pm-token")

        assert asyncio.run(service.send_email("a@example.com", "Hi", "Body")) == "failed"
