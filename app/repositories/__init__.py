from app.repositories.balance import balance_repo
from app.repositories.ledger import ledger_repo
from app.repositories.topup import topup_repo
from app.repositories.user import user_repo

__all__ = [
    "balance_repo",
    "ledger_repo",
    "topup_repo",
    "user_repo",
]
