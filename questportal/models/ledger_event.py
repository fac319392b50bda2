from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from questportal.database import Base


class LedgerEventRow(Base):
    __tablename__ = "ledger_events"

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String(50), nullable=False, index=True)                  # quest_completed, code_redeemed
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    occurred_at = Column(DateTime, nullable=False, index=True)
    ads_watched = Column(Integer, nullable=False, default=0)
