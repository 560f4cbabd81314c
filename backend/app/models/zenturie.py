from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


def extract_year(name: str) -> str:
    """Year tag from a cohort name, e.g. ``I24c`` -> ``24``."""
    if len(name) >= 3:
        return name[1:3]
    return ""


class Zenturie(Base):
    __tablename__ = "zenturien"
    __table_args__ = (UniqueConstraint("tenant_id", "name", name="uq_zenturien_tenant_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id", ondelete="CASCADE"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    year: Mapped[str] = mapped_column(String(10), nullable=False, default="")

    @property
    def study_program_prefix(self) -> str:
        """Study program and year shared by parallel cohorts, e.g. ``A24b`` -> ``A24``."""
        return self.name[:-1]
