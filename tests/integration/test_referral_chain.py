"""Integration tests for referral chain registration."""

import pytest

from payouts.services import ReferralChainManager
from payouts.utils.exceptions import NotFoundError, ValidationError


@pytest.fixture
def manager(session, policy) -> ReferralChainManager:
    return ReferralChainManager(session, policy)


async def _make_ids(make_user, count: int) -> list[int]:
    ids = []
    for _ in range(count):
        user = await make_user()
        ids.append(user.id)
    return ids


class TestRegisterReferral:
    """Up-line materialisation."""

    @pytest.mark.asyncio
    async def test_direct_referrer_is_level_one(self, manager, make_user):
        """Single referrer gives one level-1 row."""
        referrer, new_user = await _make_ids(make_user, 2)

        chain = await manager.register_referral(new_user, referrer)

        assert [(r.partner_id, r.level) for r in chain] == [(referrer, 1)]
        assert await manager.get_upline(new_user) == [referrer]

    @pytest.mark.asyncio
    async def test_upline_copied_and_capped(self, manager, make_user):
        """Seven users in a line: the last one sees five levels."""
        ids = await _make_ids(make_user, 7)
        for referrer, new_user in zip(ids, ids[1:]):
            await manager.register_referral(new_user, referrer)

        upline = await manager.get_upline(ids[-1])

        assert upline == [ids[5], ids[4], ids[3], ids[2], ids[1]]

    @pytest.mark.asyncio
    async def test_same_referrer_is_idempotent(self, manager, make_user):
        """Registering the same pair twice returns the existing chain."""
        referrer, new_user = await _make_ids(make_user, 2)

        await manager.register_referral(new_user, referrer)
        again = await manager.register_referral(new_user, referrer)

        assert len(again) == 1
        assert await manager.relationship_repo.count() == 1

    @pytest.mark.asyncio
    async def test_different_referrer_refused(self, manager, make_user):
        """A user has exactly one direct referrer."""
        first, second, new_user = await _make_ids(make_user, 3)
        await manager.register_referral(new_user, first)

        with pytest.raises(ValidationError):
            await manager.register_referral(new_user, second)

    @pytest.mark.asyncio
    async def test_self_referral_refused(self, manager, make_user):
        """A user cannot invite themselves."""
        (user_id,) = await _make_ids(make_user, 1)

        with pytest.raises(ValidationError):
            await manager.register_referral(user_id, user_id)

    @pytest.mark.asyncio
    async def test_loop_refused(self, manager, make_user):
        """A partner cannot join the team of their own referral."""
        top, middle, bottom = await _make_ids(make_user, 3)
        await manager.register_referral(middle, top)
        await manager.register_referral(bottom, middle)

        with pytest.raises(ValidationError, match="Циклическая"):
            await manager.register_referral(top, bottom)

    @pytest.mark.asyncio
    async def test_loop_below_stored_depth_refused(self, manager, make_user):
        """A root cannot join its own team deeper than five levels down."""
        chain = await _make_ids(make_user, 7)
        for referrer, referral in zip(chain, chain[1:]):
            await manager.register_referral(referral, referrer)

        root, deepest = chain[0], chain[-1]
        with pytest.raises(ValidationError, match="Циклическая"):
            await manager.register_referral(root, deepest)
        assert await manager.get_upline(root) == []

    @pytest.mark.asyncio
    async def test_unknown_user(self, manager, make_user):
        """Both users must exist."""
        (referrer,) = await _make_ids(make_user, 1)

        with pytest.raises(NotFoundError):
            await manager.register_referral(9_999, referrer)
