from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException
from jose import jwt

from core.security import ALGORITHM, SECRET_KEY, decode_token, get_current_user
from models.models import utcnow
from services.email_service import EmailService


def _token(**claims):
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


class TestGetCurrentUser:
    def test_user_from_user_id_claim(self, session, owner):
        user = get_current_user(_token(user_id=owner.id), session)

        assert user.id == owner.id

    def test_user_from_email_subject(self, session, owner):
        user = get_current_user(_token(sub="owner@x.com"), session)

        assert user.id == owner.id

    def test_soft_deleted_user_rejected(self, session, make_user):
        gone = make_user("gone@x.com", deleted_at=utcnow())

        with pytest.raises(HTTPException) as exc:
            get_current_user(_token(user_id=gone.id), session)

        assert exc.value.status_code == 401

    def test_invalid_token(self):
        with pytest.raises(HTTPException) as exc:
            decode_token("not-a-jwt")

        assert exc.value.status_code == 401

    def test_token_without_identity(self, session):
        with pytest.raises(HTTPException) as exc:
            get_current_user(_token(role="owner"), session)

        assert exc.value.status_code == 401


class TestEmailService:
    def test_unconfigured_service_only_logs(self):
        service = EmailService(api_key="", sender_email="")

        with patch("services.email_service.SendGridAPIClient") as client:
            sent = service.send_invitation_email(
                "a@x.com", "http://localhost:3000/invitations", "member", "Acme"
            )

        assert sent is True
        client.assert_not_called()

    def test_configured_service_sends_through_sendgrid(self):
        service = EmailService(api_key="SG.key", sender_email="noreply@teamseats.dev")

        with patch("services.email_service.SendGridAPIClient") as client:
            client.return_value.send.return_value = MagicMock(status_code=202)
            sent = service.send_invitation_email(
                "a@x.com", "http://localhost:3000/invitations", "owner", "Acme", "Olivia Owner"
            )

        assert sent is True
        client.assert_called_once_with("SG.key")
        message = client.return_value.send.call_args.args[0]
        assert "Acme" in message.get()["subject"]

    def test_send_failure_returns_false(self):
        service = EmailService(api_key="SG.key", sender_email="noreply@teamseats.dev")

        with patch("services.email_service.SendGridAPIClient") as client:
            client.return_value.send.side_effect = RuntimeError("sendgrid down")
            sent = service.send_invitation_email("a@x.com", "link", "member", "Acme")

        assert sent is False
