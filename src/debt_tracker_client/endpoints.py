"""Backend endpoint paths, relative to `<base_url>/<api_version>`."""

from __future__ import annotations


class AuthEndpoints:
    BASE = "/auth"
    LOGIN = f"{BASE}/login"
    LOGOUT = f"{BASE}/logout"
    REFRESH = f"{BASE}/refresh"
    CHECK = f"{BASE}/check"


class UserEndpoints:
    BASE = "/users"
    PROFILE = f"{BASE}/profile"
    SETTINGS = f"{BASE}/settings"


class ContactEndpoints:
    BASE = "/contacts"
    SEARCH = f"{BASE}/search"

    @staticmethod
    def by_id(contact_id: str) -> str:
        return f"{ContactEndpoints.BASE}/{contact_id}"


class DebtEndpoints:
    BASE = "/debts"
    MY_DEBTS = f"{BASE}/my-debts"
    THEIR_DEBTS = f"{BASE}/their-debts"
    OVERDUE = f"{BASE}/overdue"
    SUMMARY = f"{BASE}/summary"

    @staticmethod
    def by_id(debt_id: str) -> str:
        return f"{DebtEndpoints.BASE}/{debt_id}"

    @staticmethod
    def mark_as_paid(debt_id: str) -> str:
        return f"{DebtEndpoints.BASE}/{debt_id}/mark-paid"

    @staticmethod
    def add_payment(debt_id: str) -> str:
        return f"{DebtEndpoints.BASE}/{debt_id}/payments"


class PaymentEndpoints:
    BASE = "/payments"
    HISTORY = f"{BASE}/history"

    @staticmethod
    def by_debt_id(debt_id: str) -> str:
        return f"{PaymentEndpoints.BASE}/debt/{debt_id}"


class HealthEndpoints:
    PING = "/ping"
    HEALTH = "/health"
    VERSION = "/version"


def resource_prefix(path: str) -> str:
    """Return the top-level resource of a path: `/debts/42/mark-paid` -> `/debts`."""
    segments = [segment for segment in path.split("?", 1)[0].split("/") if segment]
    if not segments:
        return "/"
    return f"/{segments[0]}"
