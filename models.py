from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, CheckConstraint
from database import Base


# ─────────────────────────────────────────────────────────────
# Link Model
# ─────────────────────────────────────────────────────────────
class Link(Base):
    __tablename__ = "links"
    __table_args__ = (
        CheckConstraint("views_remaining >= 0", name="ck_links_views_remaining"),
        CheckConstraint("views_remaining <= views_total", name="ck_links_views_bound"),
    )

    id = Column(String(32), primary_key=True)
    ciphertext = Column(Text, nullable=False)           # opaque base64, never decrypted here
    views_remaining = Column(Integer, nullable=False, default=1)
    views_total = Column(Integer, nullable=False, default=1)
    ttl_seconds = Column(Integer, nullable=False, default=3600)
    password_protected = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, index=True)   # naive UTC
    expires_at = Column(DateTime, nullable=False, index=True)   # created_at + ttl_seconds
