"""
Model de configuração chave/valor editável pelo administrador.
"""

from typing import Any, Optional

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from lending.db.session import Base
from lending.models.base import UUIDMixin, TimestampMixin

LATE_FEE_CONFIG_KEY = "late_fee_config"


class Setting(Base, UUIDMixin, TimestampMixin):
    """
    Configuração global armazenada como JSON.

    Attributes:
        key: Chave única (ex.: late_fee_config)
        value: Valor JSON
        type: Agrupamento livre (general, fees, ...)
        description: Texto exibido na tela de configurações
    """
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    value: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Setting {self.key}>"
