"""Tests for the invitation tool handlers."""
from datetime import datetime, timedelta

from doable_core import models
from doable_chat import handlers

from conftest import FakeMailer


def _invite(db, seed, email, status=models.InvitationStatus.PENDING, expires_in=timedelta(days=3)):
    invitation = models.Invitation(
        team_id=seed.team.id,
        email=email,
        role=models.TeamRole.DEVELOPER,
        status=status,
        invited_by=seed.alice.id,
        expires_at=datetime.utcnow() + expires_in,
    )
    db.add(invitation)
    db.commit()
    return invitation


class TestInviteTeamMember:
    """Single invitations: validation, conflicts and email delivery."""

    async def test_invite_sends_email(self, db, seed, ctx, mailer):
        result = await handlers.handle_invite_team_member({"email": "Dana@Example.com", "role": "viewer"}, ctx)

        assert result.success, result.error
        assert result.sent_count == 1
        assert result.data["email"] == "dana@example.com"
        assert result.data["role"] == "viewer"
        assert result.data["email_sent"] is True
        assert result.data["invite_url"] == f"https://doable.test/invite/{result.data['id']}"

        assert len(mailer.sent) == 1
        sent = mailer.sent[0]
        assert sent["email"] == "dana@example.com"
        assert sent["team_name"] == "Acme"
        assert sent["inviter_name"] == "Alice Admin"
        assert sent["invite_url"] == result.data["invite_url"]

    async def test_role_defaults_to_developer(self, ctx):
        result = await handlers.handle_invite_team_member({"email": "dana@example.com"}, ctx)
        assert result.data["role"] == "developer"

    async def test_expiry_is_seven_days_out(self, ctx):
        before = datetime.utcnow()
        result = await handlers.handle_invite_team_member({"email": "dana@example.com"}, ctx)
        expires_at = result.data["expires_at"]
        assert before + timedelta(days=7) <= expires_at <= datetime.utcnow() + timedelta(days=7)

    async def test_invalid_email(self, db, seed, ctx, mailer):
        result = await handlers.handle_invite_team_member({"email": "not-an-email"}, ctx)
        assert not result.success
        assert 'Invalid email address "not-an-email"' in result.error
        assert db.query(models.Invitation).count() == 0
        assert mailer.sent == []

    async def test_invalid_role(self, ctx):
        result = await handlers.handle_invite_team_member({"email": "dana@example.com", "role": "owner"}, ctx)
        assert not result.success
        assert "admin, developer, viewer" in result.error

    async def test_placeholder_role_uses_default(self, db, seed, ctx):
        """A "null" role means the role was left out."""
        result = await handlers.handle_invite_team_member({"email": "dana@example.com", "role": "null"}, ctx)

        assert result.success, result.error
        assert result.data["role"] == "developer"

    async def test_existing_member_conflict(self, db, seed, ctx):
        result = await handlers.handle_invite_team_member({"email": "BOB@acme.test"}, ctx)
        assert not result.success
        assert "already a member" in result.error
        assert db.query(models.Invitation).count() == 0

    async def test_pending_invitation_conflict(self, db, seed, ctx, mailer):
        _invite(db, seed, "dana@example.com")
        result = await handlers.handle_invite_team_member({"email": "dana@example.com"}, ctx)
        assert not result.success
        assert "still pending" in result.error
        assert mailer.sent == []

    async def test_expired_invitation_is_replaced(self, db, seed, ctx):
        old = _invite(db, seed, "dana@example.com", expires_in=timedelta(days=-1))

        result = await handlers.handle_invite_team_member({"email": "dana@example.com", "role": "admin"}, ctx)

        assert result.success
        assert result.data["id"] == old.id
        assert db.query(models.Invitation).count() == 1
        db.refresh(old)
        assert old.role == models.TeamRole.ADMIN
        assert old.expires_at > datetime.utcnow()

    async def test_mail_failure_does_not_fail_invite(self, db, seed, make_ctx):
        ctx = make_ctx(mailer_override=FakeMailer(fail=True))

        result = await handlers.handle_invite_team_member({"email": "dana@example.com"}, ctx)

        assert result.success
        assert result.data["email_sent"] is False
        assert db.query(models.Invitation).count() == 1


class TestInviteTeamMembers:
    """Batch invitations succeed or fail per address."""

    async def test_mixed_batch(self, db, seed, ctx, mailer):
        result = await handlers.handle_invite_team_members(
            {"invitations": [{"email": "dana@example.com", "role": "developer"}, {"email": "not-an-email"}]}, ctx
        )

        assert result.success
        assert result.sent_count == 1
        assert result.failed_count == 1
        assert result.data["errors"][0]["item"] == "not-an-email"
        assert "Successfully sent 1 invitation: dana@example.com" in result.message

    async def test_placeholder_roles_use_default(self, db, seed, ctx):
        result = await handlers.handle_invite_team_members(
            {
                "invitations": [
                    {"email": "dana@example.com", "role": "undefined"},
                    {"email": "erin@example.com", "role": "viewer"},
                ]
            },
            ctx,
        )

        assert result.sent_count == 2
        assert result.failed_count == 0
        roles = {i.email: i.role for i in db.query(models.Invitation).all()}
        assert roles == {"dana@example.com": models.TeamRole.DEVELOPER, "erin@example.com": models.TeamRole.VIEWER}
        assert [i.email for i in db.query(models.Invitation).all()] == ["dana@example.com"]
        assert len(mailer.sent) == 1

    async def test_all_fail(self, ctx):
        result = await handlers.handle_invite_team_members(
            {"invitations": [{"email": "alice@acme.test"}, {"email": "nope"}]}, ctx
        )
        assert not result.success
        assert result.sent_count == 0
        assert result.failed_count == 2

    async def test_requires_list(self, ctx):
        result = await handlers.handle_invite_team_members({"invitations": "dana@example.com"}, ctx)
        assert not result.success
        assert "At least one invitation" in result.error


class TestRevokeAndResend:
    """Revoking deletes; resending extends the expiry."""

    async def test_revoke_by_email(self, db, seed, ctx):
        _invite(db, seed, "dana@example.com")
        result = await handlers.handle_revoke_invitation({"email": "Dana@example.com"}, ctx)
        assert result.success
        assert db.query(models.Invitation).count() == 0

    async def test_revoke_accepted_by_email_not_found(self, db, seed, ctx):
        _invite(db, seed, "dana@example.com", status=models.InvitationStatus.ACCEPTED)
        result = await handlers.handle_revoke_invitation({"email": "dana@example.com"}, ctx)
        assert not result.success
        assert "No pending invitation" in result.error
        assert db.query(models.Invitation).count() == 1

    async def test_revoke_requires_reference(self, ctx):
        result = await handlers.handle_revoke_invitation({}, ctx)
        assert not result.success

    async def test_resend_extends_expiry(self, db, seed, ctx, mailer):
        invitation = _invite(db, seed, "dana@example.com", expires_in=timedelta(days=-2))

        result = await handlers.handle_resend_invitation({"invitation_id": invitation.id}, ctx)

        assert result.success, result.error
        assert result.data["email_sent"] is True
        db.refresh(invitation)
        assert invitation.expires_at > datetime.utcnow() + timedelta(days=6)
        assert len(mailer.sent) == 1

    async def test_resend_accepted_conflicts(self, db, seed, ctx, mailer):
        invitation = _invite(db, seed, "dana@example.com", status=models.InvitationStatus.ACCEPTED)
        result = await handlers.handle_resend_invitation({"invitation_id": invitation.id}, ctx)
        assert not result.success
        assert "already been accepted" in result.error
        assert mailer.sent == []

    async def test_resend_unknown(self, ctx):
        result = await handlers.handle_resend_invitation({"invitation_id": "missing"}, ctx)
        assert not result.success
        assert result.error == "Invitation not found"
