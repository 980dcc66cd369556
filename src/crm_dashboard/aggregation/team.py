"""Team roster: resolve card owners to members, roles and commission."""

from decimal import Decimal
from typing import Mapping, Optional

from crm_dashboard.aggregation.constants import UNASSIGNED_USER_ID, UNASSIGNED_USER_NAME
from crm_dashboard.models.card import CrmCard
from crm_dashboard.models.dashboard import TeamMember, TeamRole
from crm_dashboard.models.settings import DashboardSettings

_HONORIFICS = frozenset({"Dr.", "Dra.", "Sr.", "Sra."})


def avatar_initials(name: Optional[str]) -> str:
    """'Dra. Ana Maria Souza' -> 'AS'; single names give their first two letters."""
    if not name or name == UNASSIGNED_USER_NAME:
        return "?"
    parts = name.split()
    if not parts:
        return "?"
    clean = [p for p in parts if p not in _HONORIFICS]
    if not clean:
        return parts[0][:2].upper()
    if len(clean) == 1:
        return clean[0][:2].upper()
    return (clean[0][0] + clean[-1][0]).upper()


def percent(part: int, whole: int) -> int:
    """round(part / whole * 100), halves rounded up; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


class TeamRoster:
    """
    Members created lazily, keyed by user id.
    Role precedence: caller override > directory entry (by id, then fuzzy name) > generic seller.
    """

    def __init__(
        self,
        settings: DashboardSettings,
        role_overrides: Optional[Mapping[str, TeamRole]] = None,
    ):
        self._settings = settings
        self._overrides = dict(role_overrides or {})
        self._members: dict[str, TeamMember] = {}

    def resolve(self, card: CrmCard) -> TeamMember:
        user_id = card.responsible_user_id or UNASSIGNED_USER_ID
        name = card.responsible_user_name or UNASSIGNED_USER_NAME

        entry = self._settings.user_directory.get(user_id)
        if entry is None and card.responsible_user_name:
            found = self._settings.find_user_by_name(card.responsible_user_name)
            if found is not None:
                user_id, entry = found
        if entry is not None:
            name = entry.name

        member = self._members.get(user_id)
        if member is None:
            role = entry.role if entry is not None else TeamRole.SELLER
            role = self._overrides.get(user_id, role)
            member = TeamMember(
                id=user_id,
                name=name,
                role=role,
                avatar_initials=avatar_initials(name),
                target=self._settings.member_target,
            )
            self._members[user_id] = member
        return member

    def commission(self, member: TeamMember, entry_value: Decimal) -> Decimal:
        """Role-scaled commission on the entry (down-payment) portion only."""
        if entry_value <= 0:
            return Decimal("0")
        return entry_value * self._settings.commission_rate(member.role)

    def finalize(self) -> list[TeamMember]:
        for member in self._members.values():
            activity = member.activity
            activity.conversion_rate = percent(activity.contracts_signed, activity.leads)
        return list(self._members.values())
