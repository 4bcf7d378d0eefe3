from dataclasses import dataclass

MEMBER_PLAN = "plus"
ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class CallerIdentity:
    """Opaque caller facts taken from the identity provider's token."""

    user_id: str
    is_member: bool = False
    is_admin: bool = False

    @classmethod
    def from_claims(cls, claims: dict) -> "CallerIdentity":
        return cls(
            user_id=str(claims["sub"]),
            is_member=claims.get("plan") == MEMBER_PLAN,
            is_admin=claims.get("role") == ADMIN_ROLE,
        )
