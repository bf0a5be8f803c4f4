import json
import logging
import uuid
from dataclasses import dataclass, field

from passlib.context import CryptContext

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"])


@dataclass
class StaffAccount:
    id: str
    email: str
    password_hash: str
    roles: list[str] = field(default_factory=list)
    name: str | None = None

    def public(self) -> dict:
        return {"id": self.id, "email": self.email, "roles": self.roles, "name": self.name}


class CredentialStore:
    """
    Login accounts keyed by lowercase email. Seeded from a JSON file at startup:
      [{"id": "...", "email": "...", "password_hash": "$2b$...", "roles": ["MANAGER"], "name": "..."}]
    """

    def __init__(self, accounts: list[StaffAccount] | None = None):
        self._accounts: dict[str, StaffAccount] = {}
        for account in accounts or []:
            self._accounts[account.email.lower()] = account

    @classmethod
    def from_file(cls, path: str | None) -> "CredentialStore":
        if not path:
            logger.warning("CREDENTIALS_FILE not set, no staff accounts can log in")
            return cls()

        with open(path, encoding="utf-8") as f:
            raw = json.load(f)

        accounts = [
            StaffAccount(
                id=str(entry.get("id") or uuid.uuid4()),
                email=entry["email"],
                password_hash=entry["password_hash"],
                roles=list(entry.get("roles") or []),
                name=entry.get("name"),
            )
            for entry in raw
        ]
        logger.info(f"Loaded {len(accounts)} accounts from {path}")
        return cls(accounts)

    def add(self, email: str, password: str, roles: list[str], id: str | None = None, name: str | None = None) -> StaffAccount:
        account = StaffAccount(
            id=id or str(uuid.uuid4()),
            email=email,
            password_hash=pwd_context.hash(password),
            roles=roles,
            name=name,
        )
        self._accounts[email.lower()] = account
        return account

    def verify(self, email: str, password: str) -> StaffAccount | None:
        account = self._accounts.get((email or "").strip().lower())
        if not account:
            return None
        if not pwd_context.verify(password, account.password_hash):
            return None
        return account

    def __len__(self):
        return len(self._accounts)
